"""
nanobanana - prompt-driven AI image generation with reusable @handle elements

Save images as elements under an @handle, mention them in a prompt, and the
prompt is rewritten to "Reference Image N" placeholders with the element
images sent alongside, in order. Images are generated through Together AI
(default) or OpenRouter.

Library usage:
- Configuration can be passed per operation (e.g. generate_image(..., config=my_config))
  or via the shared config: use get_config() / set_config() and omit the config argument.
- run_generation() is the full flow: parse prompt, resolve elements, generate, save history.
- Logging: control verbosity with set_verbosity(0|1|2) or configure_logging(verbose_level, quiet);
  NANOBANANA_VERBOSITY env (0/1/2) is read when the CLI or UI starts.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("nanobanana")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source in development)
    __version__ = "0.0.0.dev"

from nanobanana.core.config import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_IMAGE_PROVIDER,
    Config,
    get_config,
    set_config,
)
from nanobanana.core.elements import Element, ElementStore, normalize_handle
from nanobanana.core.history import (
    GeneratedImage,
    HistoryStore,
    format_relative_time,
)
from nanobanana.core.image_gen import GenerationResult, generate_image
from nanobanana.core.imgbb import upload_to_imgbb
from nanobanana.core.pipeline import GenerationOutcome, run_generation
from nanobanana.core.prompt import (
    ParsedPrompt,
    Reference,
    extract_handles,
    parse_prompt_for_elements,
    validate_prompt,
)
from nanobanana.core.reference import process_reference_image
from nanobanana.core.resolutions import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_QUALITY,
    QUALITIES,
    get_resolution,
)
from nanobanana.logging_config import configure_logging, set_verbosity
from nanobanana.utils.exceptions import (
    APIError,
    CancellationError,
    ConfigurationError,
    ImageProcessingError,
    NanobananaError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    ValidationError,
)

__all__ = [
    "APIError",
    "ASPECT_RATIOS",
    "CancellationError",
    "configure_logging",
    "Config",
    "ConfigurationError",
    "DEFAULT_ASPECT_RATIO",
    "DEFAULT_IMAGE_MODEL",
    "DEFAULT_IMAGE_PROVIDER",
    "DEFAULT_QUALITY",
    "Element",
    "ElementStore",
    "GeneratedImage",
    "GenerationOutcome",
    "GenerationResult",
    "HistoryStore",
    "ImageProcessingError",
    "NanobananaError",
    "NetworkError",
    "NotFoundError",
    "ParsedPrompt",
    "QUALITIES",
    "Reference",
    "RequestTimeoutError",
    "ValidationError",
    "extract_handles",
    "format_relative_time",
    "generate_image",
    "get_config",
    "get_resolution",
    "normalize_handle",
    "parse_prompt_for_elements",
    "process_reference_image",
    "run_generation",
    "set_config",
    "set_verbosity",
    "upload_to_imgbb",
    "validate_prompt",
]
