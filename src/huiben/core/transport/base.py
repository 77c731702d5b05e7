"""
Transport protocol.

A transport delivers one logical operation either as an embedded command
(operation name plus keyword arguments) or as an HTTP request (endpoint plus
optional JSON body). Each implementation uses the half that applies to it.
"""

from collections.abc import Mapping
from typing import Any, Protocol


class Transport(Protocol):
    """Protocol for the embedded and networked transports."""

    def available(self) -> bool:
        """Whether this transport can currently deliver calls."""
        ...

    def call(
        self,
        operation: str,
        native_args: Mapping[str, Any],
        http_endpoint: str,
        http_body: Any | None,
        timeout: float | None,
    ) -> Any:
        """Deliver one operation and return its decoded result.

        May raise TransportError or one of its subclasses.
        """
        ...
