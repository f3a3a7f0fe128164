"""
Provider protocol for image generation.

Defines the interface that all image generation providers must implement.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from nanobanana.core.config import Config

if TYPE_CHECKING:
    from nanobanana.core.image_gen import GenerationResult


class ImageGenerationProvider(Protocol):
    """Protocol for image generation providers.

    Providers implement HTTP communication with a backend and return a unified
    GenerationResult. Saving the image is left to the caller.
    """

    def generate(
        self,
        prompt: str,
        model: str,
        resolution: str,
        input_images: list[str],
        timeout: int,
        config: Config,
        cancel_check: Callable[[], bool] | None,
        *,
        api_key_override: str | None = None,
    ) -> GenerationResult:
        """Generate an image at resolution ("WxH") from prompt and ordered input images.

        May raise ValidationError, APIError, NetworkError,
        RequestTimeoutError, or CancellationError.
        """
        ...
