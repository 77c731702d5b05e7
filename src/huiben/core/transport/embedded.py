"""
Embedded transport: invokes commands on an in-process command host.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from huiben.logging_config import get_logger
from huiben.utils.exceptions import CommandError, HuibenError

logger = get_logger(__name__)


class CommandInvoker(Protocol):
    """Anything that can run a named command with keyword arguments."""

    def invoke(self, command: str, **kwargs: Any) -> Any: ...


class EmbeddedTransport:
    """Transport that hands each operation to a command host unmodified."""

    def __init__(self, host: CommandInvoker | None) -> None:
        self.host = host

    def available(self) -> bool:
        return self.host is not None

    def call(
        self,
        operation: str,
        native_args: Mapping[str, Any],
        http_endpoint: str,
        http_body: Any | None,
        timeout: float | None,
    ) -> Any:
        """Run operation on the host; failures surface as CommandError."""
        if self.host is None:
            raise CommandError("No embedded command host is attached", command=operation)
        logger.debug("Invoking command %s args=%s", operation, sorted(native_args))
        try:
            return self.host.invoke(operation, **dict(native_args))
        except CommandError:
            raise
        except (HuibenError, OSError) as e:
            raise CommandError(str(e), command=operation, original_error=e) from e
