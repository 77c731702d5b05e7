"""
Transports: protocol, HTTP and embedded implementations, dispatcher and the
canonical field-naming adapter.

The local command host is imported lazily in create_dispatcher so that the
HTTP-only client never loads the backend.
"""

from huiben.core.config import Config
from huiben.core.transport.base import Transport as Transport
from huiben.core.transport.dispatcher import Dispatcher
from huiben.core.transport.embedded import EmbeddedTransport
from huiben.core.transport.http import HttpTransport


def create_dispatcher(config: Config) -> Dispatcher:
    """
    Build the dispatcher described by config.

    The embedded transport wires a local command host over config.data_dir;
    the HTTP transport talks to config.server_url only.
    """
    http = HttpTransport(config.server_url, timeout=config.request_timeout)
    if not config.is_embedded:
        return Dispatcher(http)

    from huiben.backend.host import create_local_host

    return Dispatcher(http, EmbeddedTransport(create_local_host(config)))


__all__ = [
    "Dispatcher",
    "EmbeddedTransport",
    "HttpTransport",
    "Transport",
    "create_dispatcher",
]
