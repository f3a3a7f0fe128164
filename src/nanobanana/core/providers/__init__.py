"""
Image generation providers: protocol, registry, and built-in implementations.

Built-in providers are registered lazily on first get_registry() call; their
modules import core.image_gen, which imports this package.
"""

from nanobanana.core.providers.base import ImageGenerationProvider as ImageGenerationProvider
from nanobanana.core.providers.registry import ProviderRegistry
from nanobanana.core.providers.registry import get_registry as _get_registry_impl

PROVIDER_TOGETHER = "together"
PROVIDER_OPENROUTER = "openrouter"
KNOWN_IMAGE_PROVIDERS = (PROVIDER_TOGETHER, PROVIDER_OPENROUTER)

_builtins_registered = False


def _register_builtins(reg: ProviderRegistry) -> None:
    """Register built-in providers. Called once when registry is first used."""
    global _builtins_registered
    if _builtins_registered:
        return
    from nanobanana.core.providers.openrouter import OpenRouterProvider
    from nanobanana.core.providers.together import TogetherProvider

    reg.register(PROVIDER_TOGETHER, TogetherProvider())
    reg.register(PROVIDER_OPENROUTER, OpenRouterProvider())
    _builtins_registered = True


def get_registry() -> ProviderRegistry:
    """Return the global provider registry and ensure built-ins are registered."""
    reg = _get_registry_impl()
    _register_builtins(reg)
    return reg
