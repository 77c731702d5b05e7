"""
Logging configuration for huiben.

Everything logs under the "huiben" logger. No handler is installed until
set_verbosity or configure_logging is called, so embedding applications keep
control of their own logging setup.

Verbosity levels:
- 0 (default): INFO, dispatch targets, store mutations and generation timing
- 1: INFO plus prompt text sent for parsing and generation
- 2: DEBUG plus prompt text, request URLs, payload shapes and command arguments

HUIBEN_VERBOSITY (0/1/2) is honoured by the CLI; -v/-q flags take precedence.

The huiben handler runs every record through RedactingFilter: bearer tokens,
`key=` query parameters and api_key fields are masked, and inline base64
image data (reference images, b64_json results) is shortened to its length.
"""

import logging
import os
import re

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "huiben"
VERBOSITY_ENV = "HUIBEN_VERBOSITY"

MASK = "***"

_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[^\s'\"]+"),
    re.compile(r"([?&]key=)[^&\s'\"]+"),
    re.compile(r"(\bapi_key['\"]?\s*[:=]\s*['\"]?)[^'\"\s,}]+"),
)
_DATA_URL = re.compile(r"(data:[\w/+.-]+;base64,)([A-Za-z0-9+/=]{64,})")

_log_prompts: bool = False
_configured: bool = False


def redact_secrets(text: str) -> str:
    """Mask credentials and shorten inline image data in text."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + MASK, text)
    return _DATA_URL.sub(lambda m: f"{m.group(1)}<{len(m.group(2))} chars>", text)


class RedactingFilter(logging.Filter):
    """Rewrites each record's message through redact_secrets."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _ensure_handler() -> None:
    """Attach a stderr handler to the huiben logger once."""
    global _configured
    if _configured:
        return
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RedactingFilter())
        root.addHandler(handler)
    _configured = True


def set_verbosity(level: int) -> None:
    """
    Set logging verbosity (0=default, 1=prompts, 2=debug).

    Levels above 2 behave like 2; negative levels behave like 0.
    """
    global _log_prompts
    _ensure_handler()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if level <= 0:
        root.setLevel(logging.INFO)
        _log_prompts = False
    elif level == 1:
        root.setLevel(logging.INFO)
        _log_prompts = True
    else:
        root.setLevel(logging.DEBUG)
        _log_prompts = True


def log_prompts() -> bool:
    """Return True if prompt text may be written to the log."""
    return _log_prompts


def configure_logging(verbose_level: int = 0, quiet: bool = False) -> None:
    """
    Configure logging for the CLI or an embedding application.

    quiet wins over verbose_level and limits output to warnings and errors.
    """
    global _log_prompts
    _ensure_handler()
    if quiet:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.WARNING)
        _log_prompts = False
        return
    set_verbosity(verbose_level)


def get_verbosity_from_env() -> int:
    """Read HUIBEN_VERBOSITY; anything other than 1 or 2 means 0."""
    raw = os.environ.get(VERBOSITY_ENV, "0").strip()
    if raw in ("1", "2"):
        return int(raw)
    return 0


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under huiben (e.g. huiben.core.studio)."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = [
    "LOG_FORMAT",
    "MASK",
    "ROOT_LOGGER_NAME",
    "RedactingFilter",
    "configure_logging",
    "get_logger",
    "get_verbosity_from_env",
    "log_prompts",
    "redact_secrets",
    "set_verbosity",
]
