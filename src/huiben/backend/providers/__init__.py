"""
Image providers: protocol, registry, and built-in implementations.

Built-in providers are registered on the first get_registry() call.
"""

from huiben.backend.providers.base import ImageProvider as ImageProvider
from huiben.backend.providers.registry import ProviderRegistry
from huiben.backend.providers.registry import get_registry as _get_registry_impl
from huiben.core.models import KNOWN_MODELS as KNOWN_PROVIDERS
from huiben.core.models import MODEL_BANANA_PRO, MODEL_SEEDREAM

_builtins_registered = False


def _register_builtins(reg: ProviderRegistry) -> None:
    """Register built-in providers once."""
    global _builtins_registered
    if _builtins_registered:
        return
    from huiben.backend.providers.banana_pro import BananaProProvider
    from huiben.backend.providers.seedream import SeedreamProvider

    reg.register(MODEL_SEEDREAM, SeedreamProvider())
    reg.register(MODEL_BANANA_PRO, BananaProProvider())
    _builtins_registered = True


def get_registry() -> ProviderRegistry:
    """Return the global provider registry with the built-ins registered."""
    reg = _get_registry_impl()
    _register_builtins(reg)
    return reg


__all__ = ["KNOWN_PROVIDERS", "ImageProvider", "ProviderRegistry", "get_registry"]
