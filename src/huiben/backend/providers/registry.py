"""
Registry for image providers.

Maps provider ids ("seedream", "banana_pro") to provider implementations.
"""

from huiben.backend.providers.base import ImageProvider


class ProviderRegistry:
    """Registry mapping provider id to ImageProvider implementation."""

    def __init__(self) -> None:
        self._impls: dict[str, ImageProvider] = {}

    def register(self, provider_id: str, impl: ImageProvider) -> None:
        """Register a provider implementation. Re-registering an id replaces it."""
        self._impls[provider_id] = impl

    def get(self, provider_id: str) -> ImageProvider | None:
        return self._impls.get(provider_id)

    def provider_ids(self) -> list[str]:
        return list(self._impls.keys())


_registry: ProviderRegistry | None = None


def get_registry() -> ProviderRegistry:
    """Return the global provider registry. Creates it on first call."""
    global _registry
    if _registry is None:
        _registry = ProviderRegistry()
    return _registry
