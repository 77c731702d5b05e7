"""
Utility functions for the CLI.

This module contains helper functions used by CLI commands,
such as secret masking and exit code constants.
"""

# Exit codes (130 = common for SIGINT)
EXIT_SUCCESS = 0
EXIT_API_OR_NETWORK = 1
EXIT_VALIDATION_OR_CONFIG = 2
EXIT_CANCELLED = 130


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask all but the last few characters of a secret; empty stays empty."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


__all__ = [
    "EXIT_SUCCESS",
    "EXIT_API_OR_NETWORK",
    "EXIT_VALIDATION_OR_CONFIG",
    "EXIT_CANCELLED",
    "mask_secret",
]
