"""
Configuration gateway.

Loads and saves provider endpoints and generation defaults through the
dispatcher, and checks that a provider endpoint is reachable.
"""

from huiben.core.context import AppContext
from huiben.core.models import KNOWN_MODELS, MODEL_ALIASES, APIConfig, GenerationConfig
from huiben.core.transport import Dispatcher
from huiben.core.transport.adapter import (
    NAMING_CAMEL,
    NAMING_SNAKE,
    api_config_to_record,
    generation_config_to_record,
    normalize_api_config,
    normalize_generation_config,
)
from huiben.logging_config import get_logger
from huiben.utils.exceptions import ConfigurationError, ValidationError

logger = get_logger(__name__)


class ConfigurationGateway:
    """Provider configuration and generation defaults, persisted by the backend."""

    def __init__(self, dispatcher: Dispatcher, context: AppContext) -> None:
        self.dispatcher = dispatcher
        self.context = context

    def load_api_config(self) -> APIConfig:
        record = self.dispatcher.dispatch("load_api_config", {}, "/api/config/load")
        config = normalize_api_config(record)
        self.context.api_config = config
        logger.info("Loaded API config")
        return config

    def save_api_config(self, config: APIConfig) -> bool:
        self.dispatcher.dispatch(
            "save_api_config",
            {"config": api_config_to_record(config, NAMING_SNAKE)},
            "/api/config/save",
            api_config_to_record(config, NAMING_CAMEL),
        )
        self.context.api_config = config
        logger.info("Saved API config")
        return True

    def default_api_config(self) -> APIConfig:
        record = self.dispatcher.dispatch("get_default_api_config", {}, "/api/config/default")
        return normalize_api_config(record)

    def load_generation_config(self) -> GenerationConfig:
        record = self.dispatcher.dispatch(
            "load_generation_config", {}, "/api/generation-config/load"
        )
        config = normalize_generation_config(record)
        self.context.generation_config = config
        logger.info("Loaded generation config model=%s", config.model)
        return config

    def default_generation_config(self) -> GenerationConfig:
        record = self.dispatcher.dispatch(
            "get_default_generation_config", {}, "/api/generation-config/default"
        )
        return normalize_generation_config(record)

    def save_generation_config(self, config: GenerationConfig) -> bool:
        record = generation_config_to_record(config)
        self.dispatcher.dispatch(
            "save_generation_config", {"config": record}, "/api/generation-config/save", record
        )
        self.context.generation_config = config
        logger.info("Saved generation config model=%s", config.model)
        return True

    def test_connection(self, provider: str, base_url: str, api_key: str) -> bool:
        """
        Check that a provider endpoint answers.

        Returns:
            True; a reachable endpoint is the only non-exceptional outcome

        Raises:
            ValidationError: Unknown provider
            ConfigurationError: The backend reports the endpoint as unusable
            TransportError: The check itself could not be delivered
        """
        provider = MODEL_ALIASES.get(provider, provider)
        if provider not in KNOWN_MODELS:
            raise ValidationError(
                f"Unknown provider: {provider!r}. Must be one of: {', '.join(KNOWN_MODELS)}.",
                field="provider",
            )
        logger.info("Testing connection provider=%s base_url=%s", provider, base_url)
        ok = self.dispatcher.dispatch(
            "test_api_connection",
            {"model": provider, "base_url": base_url, "api_key": api_key},
            "/api/test-connection",
            {"model": provider, "baseUrl": base_url, "apiKey": api_key},
        )
        if ok is not True:
            raise ConfigurationError(
                f"Connection test failed for {provider} at {base_url or '(no base URL)'}: "
                "check the base URL and API key."
            )
        return True
