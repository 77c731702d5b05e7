"""
huiben - picture-book image generation client

Turns a free-text prompt with @character mentions into an image generation
request for the seedream or banana_pro providers, attaching each character's
bound reference image.

Library usage:
- Studio.from_config(config) builds the orchestrator for the configured
  transport ("embedded" runs the command host in-process, "http" talks to a
  networked server). Call startup() once, then parse / bind / generate / export.
- Configuration comes from HUIBEN_* environment variables (and .env) via
  Config.from_env(); use get_config() / set_config() for the shared instance.
- Logging: control verbosity with set_verbosity(0|1|2) or configure_logging(verbose_level, quiet);
  HUIBEN_VERBOSITY env (0/1/2) is read when the CLI runs or when logging is configured.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("huiben")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source in development)
    __version__ = "0.0.0.dev"

from huiben.core.config import (
    DEFAULT_SERVER_URL,
    TRANSPORT_EMBEDDED,
    TRANSPORT_HTTP,
    Config,
    get_config,
    set_config,
)
from huiben.core.models import (
    CharacterBinding,
    GenerationConfig,
    ImageGenerationParams,
    ImageGenerationResult,
    ParsedPrompt,
)
from huiben.core.studio import Studio
from huiben.core.translator import GenerationSelection, normalize_ratio
from huiben.logging_config import configure_logging, set_verbosity
from huiben.utils.exceptions import (
    APIError,
    CommandError,
    ConfigurationError,
    HuibenError,
    ImageProcessingError,
    NetworkError,
    RequestTimeoutError,
    StoreError,
    TransportError,
    ValidationError,
)

__all__ = [
    "APIError",
    "CharacterBinding",
    "CommandError",
    "Config",
    "ConfigurationError",
    "DEFAULT_SERVER_URL",
    "GenerationConfig",
    "GenerationSelection",
    "HuibenError",
    "ImageGenerationParams",
    "ImageGenerationResult",
    "ImageProcessingError",
    "NetworkError",
    "ParsedPrompt",
    "RequestTimeoutError",
    "StoreError",
    "Studio",
    "TRANSPORT_EMBEDDED",
    "TRANSPORT_HTTP",
    "TransportError",
    "ValidationError",
    "configure_logging",
    "get_config",
    "normalize_ratio",
    "set_config",
    "set_verbosity",
]
