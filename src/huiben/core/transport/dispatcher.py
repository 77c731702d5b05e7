"""
Transport dispatcher.

Each call asks a capability probe whether an embedded command host is
present and routes the operation to the embedded or the HTTP transport
accordingly. Results are returned as decoded JSON; dispatch_binding and
dispatch_bindings additionally pass them through the canonical adapter.
"""

from collections.abc import Callable, Mapping
from typing import Any

from huiben.core.models import CharacterBinding
from huiben.core.transport.adapter import normalize_binding, normalize_bindings
from huiben.core.transport.base import Transport
from huiben.logging_config import get_logger
from huiben.utils.exceptions import CommandError

logger = get_logger(__name__)


class Dispatcher:
    """Routes operations to the embedded or networked transport."""

    def __init__(
        self,
        http: Transport,
        embedded: Transport | None = None,
        probe: Callable[[], bool] | None = None,
    ) -> None:
        self.http = http
        self.embedded = embedded
        self._probe = probe if probe is not None else self._embedded_host_present

    def _embedded_host_present(self) -> bool:
        return self.embedded is not None and self.embedded.available()

    def is_embedded(self) -> bool:
        """Return True when calls currently go to the embedded command host."""
        return bool(self._probe())

    def dispatch(
        self,
        operation: str,
        native_args: Mapping[str, Any] | None = None,
        http_endpoint: str = "",
        http_body: Any | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """
        Deliver one operation over whichever transport is active.

        Args:
            operation: Embedded command name
            native_args: Keyword arguments for the embedded command
            http_endpoint: Path (and query) on the networked server
            http_body: JSON body; None sends a GET
            timeout: Per-call timeout in seconds for the HTTP transport

        Returns:
            The decoded result

        Raises:
            TransportError: HTTP error response or failed command
            NetworkError: No response was received
        """
        if self.is_embedded():
            if self.embedded is None:
                raise CommandError(
                    "Embedded transport selected but no command host is attached",
                    command=operation,
                )
            logger.debug("Dispatching %s via embedded command", operation)
            transport = self.embedded
        else:
            logger.debug("Dispatching %s via HTTP %s", operation, http_endpoint)
            transport = self.http
        return transport.call(operation, native_args or {}, http_endpoint, http_body, timeout)

    def dispatch_binding(
        self,
        operation: str,
        native_args: Mapping[str, Any] | None = None,
        http_endpoint: str = "",
        http_body: Any | None = None,
        *,
        timeout: float | None = None,
    ) -> CharacterBinding:
        """dispatch() for operations returning one binding record."""
        record = self.dispatch(
            operation, native_args, http_endpoint, http_body, timeout=timeout
        )
        return normalize_binding(record)

    def dispatch_bindings(
        self,
        operation: str,
        native_args: Mapping[str, Any] | None = None,
        http_endpoint: str = "",
        http_body: Any | None = None,
        *,
        timeout: float | None = None,
    ) -> list[CharacterBinding]:
        """dispatch() for operations returning a list of binding records."""
        records = self.dispatch(
            operation, native_args, http_endpoint, http_body, timeout=timeout
        )
        return normalize_bindings(records)
