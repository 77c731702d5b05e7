"""
Error handling for the CLI.

This module maps library exceptions (raised, or recorded by the Studio as
last_error) to exit codes and user messages.
"""

import sys
from collections.abc import Callable

import click

from huiben import (
    APIError,
    CommandError,
    ConfigurationError,
    HuibenError,
    ImageProcessingError,
    NetworkError,
    RequestTimeoutError,
    StoreError,
    Studio,
    TransportError,
    ValidationError,
)
from huiben.cli import progress
from huiben.cli.utils import EXIT_API_OR_NETWORK, EXIT_CANCELLED, EXIT_VALIDATION_OR_CONFIG


def map_exception_to_exit(exc: BaseException) -> tuple[int, str]:
    """Map library and known exceptions to (exit_code, user_message)."""
    if isinstance(exc, CommandError) and isinstance(
        exc.original_error, (ValidationError, ConfigurationError)
    ):
        # The host rejected the input; report it like a local validation failure
        code, _ = map_exception_to_exit(exc.original_error)
        return (code, exc.args[0] if exc.args else "Command failed.")
    if isinstance(exc, ValidationError):
        msg = exc.args[0] if exc.args else "Validation failed."
        if getattr(exc, "field", None):
            msg = f"{msg} (field: {exc.field})"
        return (EXIT_VALIDATION_OR_CONFIG, msg)
    if isinstance(exc, ConfigurationError):
        return (EXIT_VALIDATION_OR_CONFIG, exc.args[0] if exc.args else "Invalid configuration.")
    if isinstance(exc, ImageProcessingError):
        return (EXIT_VALIDATION_OR_CONFIG, exc.args[0] if exc.args else "Image processing failed.")
    if isinstance(exc, KeyboardInterrupt):
        return (EXIT_CANCELLED, "Cancelled.")
    if isinstance(exc, (APIError, NetworkError, RequestTimeoutError, TransportError)):
        return (EXIT_API_OR_NETWORK, exc.args[0] if exc.args else "API or network error.")
    if isinstance(exc, StoreError):
        return (EXIT_API_OR_NETWORK, exc.args[0] if exc.args else "Storage error.")
    if isinstance(exc, HuibenError):
        return (EXIT_API_OR_NETWORK, exc.args[0] if exc.args else "An error occurred.")
    # Unhandled
    return (EXIT_API_OR_NETWORK, str(exc) if exc.args else "An unexpected error occurred.")


def _report(msg: str, code: int, quiet: bool) -> None:
    if code == EXIT_CANCELLED:
        if not quiet:
            progress.print_warning(msg)
    elif quiet:
        click.echo(msg, err=True)
    else:
        progress.print_error(msg)


def run_with_error_handling(
    fn: Callable[[], None],
    *,
    quiet: bool = False,
    debug: bool = False,
) -> None:
    """
    Run fn(); on exception map to exit code and message, print and sys.exit.
    Used so command bodies stay free of try/except for known errors.
    """
    try:
        fn()
    except (HuibenError, KeyboardInterrupt) as e:
        code, msg = map_exception_to_exit(e)
        _report(msg, code, quiet)
        sys.exit(code)
    except Exception as e:
        if debug:
            raise
        code, msg = map_exception_to_exit(e)
        _report(msg, code, quiet)
        sys.exit(EXIT_API_OR_NETWORK)


def exit_on_failure(studio: Studio) -> None:
    """
    Exit with the code for the Studio's last recorded error, if any.

    The Studio has already reported the error as a notice, so nothing is
    printed here.
    """
    if studio.last_error is not None:
        code, _ = map_exception_to_exit(studio.last_error)
        sys.exit(code)


__all__ = [
    "exit_on_failure",
    "map_exception_to_exit",
    "run_with_error_handling",
]
