"""
Runtime configuration for huiben.

This module decides which transport is used, where the networked server and
the local image service live, where the embedded host keeps its data, and the
timeouts applied to dispatched calls. Provider credentials are not part of it;
they are stored by the backend and managed through the configuration gateway.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from huiben.logging_config import get_logger
from huiben.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

# Load environment variables from .env file
load_dotenv()

TRANSPORT_EMBEDDED = "embedded"
TRANSPORT_HTTP = "http"
KNOWN_TRANSPORTS = (TRANSPORT_EMBEDDED, TRANSPORT_HTTP)

DEFAULT_TRANSPORT = TRANSPORT_EMBEDDED
DEFAULT_SERVER_URL = "http://127.0.0.1:3000"
DEFAULT_LOCAL_SERVICE_URL = "http://127.0.0.1:3001"
DEFAULT_DATA_DIR = "~/.huiben"


@dataclass
class Config:
    """Configuration for the huiben orchestrator and its embedded host."""

    transport: str = DEFAULT_TRANSPORT

    # Origin of the networked server; also the base of image retrieval URLs
    # when the HTTP transport is active
    server_url: str = DEFAULT_SERVER_URL
    # Local image service used for retrieval URLs under the embedded transport
    local_service_url: str = DEFAULT_LOCAL_SERVICE_URL

    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR).expanduser())
    download_dir: Path = field(default_factory=lambda: Path("."))

    # Timeouts (seconds)
    request_timeout: int = 30
    generation_timeout: int = 180  # 3 minutes
    connection_test_timeout: int = 10

    # Seconds between simulated progress updates
    progress_interval: float = 0.3

    # Debug: log provider payloads with image data truncated
    debug_api: bool = False

    _validated: bool = field(default=False, repr=False)

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create a Config instance from environment variables.

        Environment variables:
            HUIBEN_TRANSPORT: "embedded" (default) or "http"
            HUIBEN_SERVER_URL: Networked server origin
            HUIBEN_LOCAL_SERVICE_URL: Local image service origin
            HUIBEN_DATA_DIR: Data directory of the embedded host
            HUIBEN_DOWNLOAD_DIR: Where exported images land under the HTTP transport
            HUIBEN_REQUEST_TIMEOUT / HUIBEN_GENERATION_TIMEOUT: Timeouts in seconds
            HUIBEN_DEBUG_API: Log provider payloads (1/true/yes)

        Returns:
            Config instance populated from environment
        """

        def _int_env(name: str, default: int) -> int:
            val = os.getenv(name)
            if val is None or val == "":
                return default
            try:
                return int(val)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be an integer, got {val!r}.") from e

        debug_api = os.getenv("HUIBEN_DEBUG_API", "").strip().lower() in ("1", "true", "yes")
        data_dir = os.getenv("HUIBEN_DATA_DIR") or DEFAULT_DATA_DIR
        download_dir = os.getenv("HUIBEN_DOWNLOAD_DIR") or "."

        return cls(
            transport=os.getenv("HUIBEN_TRANSPORT", DEFAULT_TRANSPORT).strip().lower(),
            server_url=os.getenv("HUIBEN_SERVER_URL", DEFAULT_SERVER_URL),
            local_service_url=os.getenv("HUIBEN_LOCAL_SERVICE_URL", DEFAULT_LOCAL_SERVICE_URL),
            data_dir=Path(data_dir).expanduser(),
            download_dir=Path(download_dir).expanduser(),
            request_timeout=_int_env("HUIBEN_REQUEST_TIMEOUT", 30),
            generation_timeout=_int_env("HUIBEN_GENERATION_TIMEOUT", 180),
            debug_api=debug_api,
        )

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        logger.debug("Validating config transport=%s", self.transport)

        if self.transport not in KNOWN_TRANSPORTS:
            raise ConfigurationError(
                f"Unknown transport: {self.transport!r}. "
                f"Must be one of: {', '.join(KNOWN_TRANSPORTS)}."
            )
        for name in ("server_url", "local_service_url"):
            url = getattr(self, name)
            if not url.startswith(("http://", "https://")):
                raise ConfigurationError(f"{name} must be an http(s) URL, got {url!r}.")
        for name in ("request_timeout", "generation_timeout", "connection_test_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}.")
        if self.progress_interval <= 0:
            raise ConfigurationError(
                f"progress_interval must be positive, got {self.progress_interval}."
            )

        self._validated = True

    def is_valid(self) -> bool:
        """Return True once validate() has succeeded."""
        return self._validated

    def set_transport(self, transport: str) -> None:
        """
        Switch the transport.

        Raises:
            ConfigurationError: If transport is unknown
        """
        transport = transport.strip().lower()
        if transport not in KNOWN_TRANSPORTS:
            raise ConfigurationError(
                f"Unknown transport: {transport!r}. "
                f"Must be one of: {', '.join(KNOWN_TRANSPORTS)}."
            )
        self.transport = transport
        self._validated = False

    @property
    def is_embedded(self) -> bool:
        return self.transport == TRANSPORT_EMBEDDED


# Global configuration instance
_global_config: Config | None = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        The global Config instance
    """
    global _global_config
    if _global_config is None:
        _global_config = Config.from_env()
    return _global_config


def set_config(config: Config) -> None:
    """
    Set the global configuration instance.

    Args:
        config: The Config instance to use globally
    """
    global _global_config
    _global_config = config
