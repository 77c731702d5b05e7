"""Unit tests for the configuration gateway."""

from unittest.mock import MagicMock, patch

import pytest

from huiben.backend.settings import DEFAULT_BANANA_PRO_BASE_URL, DEFAULT_SEEDREAM_BASE_URL
from huiben.core.context import AppContext
from huiben.core.gateway import ConfigurationGateway
from huiben.core.models import APIConfig, GenerationConfig, ProviderEndpoint
from huiben.core.transport import Dispatcher, create_dispatcher
from huiben.utils.exceptions import CommandError, ConfigurationError, ValidationError


@pytest.fixture
def gateway(embedded_config) -> ConfigurationGateway:
    return ConfigurationGateway(create_dispatcher(embedded_config), AppContext())


def _http_gateway(result) -> tuple[ConfigurationGateway, MagicMock]:
    http = MagicMock()
    http.call.return_value = result
    return ConfigurationGateway(Dispatcher(http), AppContext()), http


@pytest.mark.unit
class TestApiConfig:
    def test_save_then_load_round_trip(self, gateway):
        cfg = APIConfig(
            seedream=ProviderEndpoint("https://seedream.example", "sk-seed"),
            banana_pro=ProviderEndpoint("https://banana.example", "sk-banana"),
        )
        gateway.save_api_config(cfg)
        gateway.context.api_config = APIConfig()
        loaded = gateway.load_api_config()
        assert loaded == cfg
        assert gateway.context.api_config == cfg

    def test_load_before_save_fails(self, gateway):
        with pytest.raises(CommandError):
            gateway.load_api_config()

    def test_defaults(self, gateway):
        defaults = gateway.default_api_config()
        assert defaults.seedream.base_url == DEFAULT_SEEDREAM_BASE_URL
        assert defaults.banana_pro.base_url == DEFAULT_BANANA_PRO_BASE_URL
        assert defaults.seedream.api_key == ""

    def test_http_save_sends_camel_case(self):
        gateway, http = _http_gateway({"success": True})
        gateway.save_api_config(APIConfig(banana_pro=ProviderEndpoint("https://b", "k")))
        operation, _native, endpoint, body, _timeout = http.call.call_args.args
        assert operation == "save_api_config"
        assert endpoint == "/api/config/save"
        assert body["bananaPro"] == {"baseUrl": "https://b", "apiKey": "k"}

    def test_http_load_accepts_camel_case(self):
        gateway, _ = _http_gateway({"seedream": {"baseUrl": "https://s", "apiKey": "k"}})
        assert gateway.load_api_config().seedream == ProviderEndpoint("https://s", "k")


@pytest.mark.unit
class TestGenerationConfig:
    def test_save_then_load(self, gateway):
        cfg = GenerationConfig(model="banana_pro", width=2048, height=1152, count=2)
        gateway.save_generation_config(cfg)
        assert gateway.load_generation_config() == cfg

    def test_default_is_square_seedream(self, gateway):
        cfg = gateway.default_generation_config()
        assert cfg.model == "seedream"
        assert cfg.size == "1024x1024"
        assert (cfg.width, cfg.height) == (1, 1)


@pytest.mark.unit
class TestConnection:
    def test_unknown_provider_rejected_before_dispatch(self):
        gateway, http = _http_gateway(True)
        with pytest.raises(ValidationError):
            gateway.test_connection("midjourney", "https://x", "k")
        http.call.assert_not_called()

    def test_http_body_uses_camel_case(self):
        gateway, http = _http_gateway(True)
        assert gateway.test_connection("jimeng", "https://s", "k") is True
        body = http.call.call_args.args[3]
        assert body == {"model": "seedream", "baseUrl": "https://s", "apiKey": "k"}

    def test_false_result_is_configuration_error(self):
        gateway, _ = _http_gateway(False)
        with pytest.raises(ConfigurationError):
            gateway.test_connection("banana_pro", "https://b", "k")

    def test_embedded_check_uses_provider(self, gateway):
        ok = MagicMock(ok=True, status_code=200)
        with patch("huiben.backend.providers.base.requests.get", return_value=ok) as mock_get:
            assert gateway.test_connection("seedream", "https://s.example", "sk-1") is True
        args, kwargs = mock_get.call_args
        assert args[0] == "https://s.example/v1/models"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-1"
        assert kwargs["timeout"] == 10
