"""Unit tests for config."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from huiben.core.config import (
    DEFAULT_SERVER_URL,
    TRANSPORT_EMBEDDED,
    TRANSPORT_HTTP,
    Config,
    get_config,
    set_config,
)
from huiben.utils.exceptions import ConfigurationError


@pytest.mark.unit
class TestConfig:
    def test_defaults(self):
        c = Config()
        assert c.transport == TRANSPORT_EMBEDDED
        assert c.server_url == DEFAULT_SERVER_URL
        assert c.request_timeout == 30
        assert c.generation_timeout == 180
        assert c.connection_test_timeout == 10
        assert c.is_embedded is True

    def test_validate_sets_validated(self):
        c = Config()
        c.validate()
        assert c.is_valid() is True

    def test_validate_rejects_unknown_transport(self):
        c = Config(transport="pigeon")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "pigeon" in str(exc_info.value)

    def test_validate_rejects_non_http_url(self):
        c = Config(server_url="ftp://example.com")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "server_url" in str(exc_info.value)

    @pytest.mark.parametrize(
        "field_name", ["request_timeout", "generation_timeout", "connection_test_timeout"]
    )
    def test_validate_rejects_non_positive_timeouts(self, field_name):
        c = Config(**{field_name: 0})
        with pytest.raises(ConfigurationError):
            c.validate()

    def test_validate_rejects_non_positive_interval(self):
        with pytest.raises(ConfigurationError):
            Config(progress_interval=0).validate()

    def test_set_transport(self):
        c = Config()
        c.validate()
        c.set_transport(" HTTP ")
        assert c.transport == TRANSPORT_HTTP
        assert c.is_embedded is False
        assert c.is_valid() is False

    def test_set_transport_rejects_unknown(self):
        with pytest.raises(ConfigurationError):
            Config().set_transport("carrier")

    def test_from_env_uses_env_vars(self, tmp_path):
        with patch.dict(
            os.environ,
            {
                "HUIBEN_TRANSPORT": "http",
                "HUIBEN_SERVER_URL": "http://books.local:8080",
                "HUIBEN_DATA_DIR": str(tmp_path),
                "HUIBEN_DOWNLOAD_DIR": str(tmp_path / "out"),
                "HUIBEN_REQUEST_TIMEOUT": "12",
                "HUIBEN_GENERATION_TIMEOUT": "240",
                "HUIBEN_DEBUG_API": "yes",
            },
            clear=False,
        ):
            c = Config.from_env()
        assert c.transport == TRANSPORT_HTTP
        assert c.server_url == "http://books.local:8080"
        assert c.data_dir == Path(tmp_path)
        assert c.download_dir == tmp_path / "out"
        assert c.request_timeout == 12
        assert c.generation_timeout == 240
        assert c.debug_api is True

    def test_from_env_rejects_bad_int(self):
        with patch.dict(os.environ, {"HUIBEN_REQUEST_TIMEOUT": "soon"}, clear=False):
            with pytest.raises(ConfigurationError) as exc_info:
                Config.from_env()
        assert "HUIBEN_REQUEST_TIMEOUT" in str(exc_info.value)


@pytest.mark.unit
class TestGlobalConfig:
    def test_set_then_get(self):
        c = Config(server_url="http://example.org")
        set_config(c)
        assert get_config() is c
