"""
Registry for image generation providers.

Maps provider ids (e.g. "together", "openrouter") to provider implementations.
"""

from nanobanana.core.providers.base import ImageGenerationProvider


class ProviderRegistry:
    """Registry mapping provider id to ImageGenerationProvider implementation."""

    def __init__(self) -> None:
        self._impls: dict[str, ImageGenerationProvider] = {}

    def register(self, provider_id: str, impl: ImageGenerationProvider) -> None:
        """Register a provider implementation; replaces any existing one for the id."""
        self._impls[provider_id] = impl

    def get(self, provider_id: str) -> ImageGenerationProvider | None:
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
