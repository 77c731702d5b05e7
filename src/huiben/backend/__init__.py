"""
Embedded backend: the in-process command host with its prompt parser,
file-backed stores and image providers.
"""

from huiben.backend.host import CommandHost, LocalBackend, create_local_host

__all__ = ["CommandHost", "LocalBackend", "create_local_host"]
