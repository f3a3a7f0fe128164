"""
Image generation for nanobanana.

generate_image validates the request, dispatches it to the configured provider
(Together AI by default, or OpenRouter) and saves the resulting PNG under the
upload directory.
"""

import io
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from nanobanana.core.config import Config, get_config
from nanobanana.core.providers import KNOWN_IMAGE_PROVIDERS, get_registry
from nanobanana.core.schemas import GenerateRequest, validate_request
from nanobanana.logging_config import get_logger
from nanobanana.utils.exceptions import ImageProcessingError, ValidationError

logger = get_logger(__name__)

# Public URL prefix for files saved under the upload directory
UPLOAD_URL_PREFIX = "/upload/"


@dataclass
class GenerationResult:
    """Result of an image generation operation.

    ``image`` is the decoded PIL image and ``base64`` the PNG payload as
    returned by the provider. ``image_url`` and ``saved_path`` are set once the
    image has been written to the upload directory.
    """

    image: Image.Image
    _format: str  # e.g. 'png'
    generation_time: float  # seconds
    model_used: str
    prompt_used: str
    resolution: str  # "WxH" requested
    input_image_count: int
    base64: str = ""
    image_url: str | None = None
    saved_path: Path | None = None

    @property
    def format(self) -> str:
        return self._format

    @property
    def image_data(self) -> bytes:
        """Image bytes encoded in ``format``."""
        buf = io.BytesIO()
        self.image.save(buf, format=self._format.upper())
        return buf.getvalue()

    def data_url(self) -> str:
        return f"data:image/{self._format};base64,{self.base64}"


def save_generated_image(result: GenerationResult, upload_dir: Path) -> Path:
    """
    Write the result as ``<upload_dir>/<uuid>.png`` and set its image_url.

    Raises:
        ImageProcessingError: If the file cannot be written
    """
    upload_dir = Path(upload_dir)
    filename = f"{uuid.uuid4()}.png"
    path = upload_dir / filename
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
        result.image.save(path, format="PNG")
    except (OSError, ValueError) as e:
        raise ImageProcessingError(
            f"Failed to save generated image: {e}", image_path=str(path)
        ) from e
    result.saved_path = path
    result.image_url = f"{UPLOAD_URL_PREFIX}{filename}"
    logger.debug("Saved generated image path=%s", path)
    return path


def generate_image(
    prompt: str,
    resolution: str,
    input_images: list[str] | None = None,
    model: str | None = None,
    provider: str | None = None,
    api_key: str | None = None,
    timeout: int | None = None,
    config: Config | None = None,
    cancel_check: Callable[[], bool] | None = None,
    save: bool = True,
) -> GenerationResult:
    """
    Generate an image from a (handle-free) prompt.

    Args:
        prompt: Prompt text, with @handles already replaced by reference placeholders
        resolution: Output size "WxH" (see core.resolutions.get_resolution)
        input_images: Reference images in order; "Reference Image N" is input_images[N-1]
        model: Model ID to use (defaults to config value)
        provider: Provider id, "together" or "openrouter" (defaults to config value)
        api_key: Optional API key for the provider (defaults to config value)
        timeout: Optional timeout in seconds (defaults to config value)
        config: Optional config to use; if None, uses shared config from get_config()
        cancel_check: Optional callable returning True to cancel; polled during the request
        save: Write the image to the upload directory and set image_url

    Returns:
        GenerationResult with image data and metadata

    Raises:
        ValidationError: If inputs are invalid or the provider is unknown
        APIError: If API call fails
        NetworkError: If network error occurs
        RequestTimeoutError: If request times out
        CancellationError: If cancel_check returned True
        ImageProcessingError: If the image cannot be saved
    """
    request = validate_request(
        GenerateRequest,
        prompt=prompt,
        resolution=resolution,
        input_images=list(input_images or []),
    )
    if not request.prompt.strip():
        raise ValidationError("Prompt cannot be empty", field="prompt")

    config = config or get_config()
    provider_id = provider or config.default_image_provider
    impl = get_registry().get(provider_id)
    if impl is None:
        raise ValidationError(
            f"Unknown image provider: {provider_id!r}. "
            f"Must be one of: {', '.join(KNOWN_IMAGE_PROVIDERS)}.",
            field="provider",
        )

    start_time = time.time()
    result = impl.generate(
        request.prompt,
        model or config.default_image_model,
        request.resolution,
        request.input_images,
        timeout if timeout is not None else config.generation_timeout,
        config,
        cancel_check,
        api_key_override=api_key,
    )
    if save:
        save_generated_image(result, config.resolved_upload_dir)
    logger.debug(
        "generate_image finished in %.2fs provider=%s", time.time() - start_time, provider_id
    )
    return result
