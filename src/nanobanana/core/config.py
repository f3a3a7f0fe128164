"""
Configuration management for nanobanana.

This module handles API keys (image generation and image hosting), provider and
model selection, local storage locations and timeouts.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from nanobanana.logging_config import get_logger
from nanobanana.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

# Load environment variables from .env file
load_dotenv()

# Default configuration constants
DEFAULT_TOGETHER_BASE_URL = "https://api.together.xyz/v1"
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_IMGBB_UPLOAD_URL = "https://api.imgbb.com/1/upload"
DEFAULT_IMAGE_PROVIDER = "together"
DEFAULT_IMAGE_MODEL = "google/gemini-3-pro-image"
DEFAULT_DATA_DIR = Path.home() / ".nanobanana"
DEFAULT_USER_ID = "local"
DEFAULT_HISTORY_MAX_ITEMS = 50

# Provider ids accepted by validate(); nanobanana.core.providers imports this module
KNOWN_IMAGE_PROVIDERS = ("together", "openrouter")


@dataclass
class Config:
    """Configuration for the nanobanana application."""

    # API keys (excluded from repr to avoid leaking secrets)
    together_api_key: str = field(default="", repr=False)
    openrouter_api_key: str = field(default="", repr=False)
    imgbb_api_key: str = field(default="", repr=False)

    # Endpoints
    together_base_url: str = DEFAULT_TOGETHER_BASE_URL
    openrouter_base_url: str = DEFAULT_OPENROUTER_BASE_URL
    imgbb_upload_url: str = DEFAULT_IMGBB_UPLOAD_URL

    # Model configuration
    default_image_provider: str = DEFAULT_IMAGE_PROVIDER
    default_image_model: str = DEFAULT_IMAGE_MODEL

    # Local storage: element database, history file, generated images
    data_dir: Path = DEFAULT_DATA_DIR
    upload_dir: Path | None = None
    history_max_items: int = DEFAULT_HISTORY_MAX_ITEMS

    # Owner id used for element records when no auth layer supplies one
    user_id: str = DEFAULT_USER_ID

    # Uploaded image processing
    min_image_pixels: int = 2500
    max_image_pixels: int = 4_000_000

    # Timeouts (seconds)
    generation_timeout: int = 180
    upload_timeout: int = 60

    # Debug: log raw API payload/response with image data truncated
    debug_api: bool = False

    _validated: bool = field(default=False, repr=False)

    @property
    def elements_db_path(self) -> Path:
        """SQLite file holding element records."""
        return Path(self.data_dir) / "elements.sqlite"

    @property
    def history_path(self) -> Path:
        """JSON key-value file holding generation history."""
        return Path(self.data_dir) / "storage.json"

    @property
    def resolved_upload_dir(self) -> Path:
        """Directory where generated images are saved (default: <data_dir>/upload)."""
        if self.upload_dir is not None:
            return Path(self.upload_dir)
        return Path(self.data_dir) / "upload"

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create a Config instance from environment variables.

        Environment variables:
            TOGETHER_API_KEY: Required for the together provider
            OPENROUTER_API_KEY: Required for the openrouter provider
            IMGBB_API_KEY: Required to create elements (image hosting)
            TOGETHER_BASE_URL: Optional Together API base URL
            NANOBANANA_DEFAULT_PROVIDER: Optional default provider (together, openrouter)
            NANOBANANA_DEFAULT_MODEL: Optional default image model
            NANOBANANA_DATA_DIR: Optional data directory (default ~/.nanobanana)
            NANOBANANA_UPLOAD_DIR: Optional directory for generated images
            NANOBANANA_USER_ID: Optional owner id for element records
            NANOBANANA_HISTORY_MAX: Optional history cap (default 50)
            NANOBANANA_DEBUG_API: Optional; 1/true/yes logs API payloads

        Returns:
            Config instance populated from environment
        """

        def _int_env(name: str, default: int) -> int:
            val = os.getenv(name)
            if val is None or val == "":
                return default
            try:
                return int(val)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be an integer, got {val!r}.") from e

        debug_api = os.getenv("NANOBANANA_DEBUG_API", "").strip().lower() in ("1", "true", "yes")
        data_dir = os.getenv("NANOBANANA_DATA_DIR")
        upload_dir = os.getenv("NANOBANANA_UPLOAD_DIR")

        return cls(
            together_api_key=os.getenv("TOGETHER_API_KEY", ""),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
            imgbb_api_key=os.getenv("IMGBB_API_KEY", ""),
            together_base_url=os.getenv("TOGETHER_BASE_URL") or DEFAULT_TOGETHER_BASE_URL,
            default_image_provider=os.getenv(
                "NANOBANANA_DEFAULT_PROVIDER", DEFAULT_IMAGE_PROVIDER
            ),
            default_image_model=os.getenv("NANOBANANA_DEFAULT_MODEL", DEFAULT_IMAGE_MODEL),
            data_dir=Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR,
            upload_dir=Path(upload_dir).expanduser() if upload_dir else None,
            user_id=os.getenv("NANOBANANA_USER_ID") or DEFAULT_USER_ID,
            history_max_items=_int_env("NANOBANANA_HISTORY_MAX", DEFAULT_HISTORY_MAX_ITEMS),
            debug_api=debug_api,
        )

    def api_key_for(self, provider: str) -> str:
        """Return the configured API key for an image provider ('' if unknown)."""
        if provider == "together":
            return self.together_api_key
        if provider == "openrouter":
            return self.openrouter_api_key
        return ""

    def validate(self) -> None:
        """
        Validate the configuration.

        Only the default image provider's key is required here; the imgbb key is
        checked when an element is created.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        logger.debug("Validating config")

        if self.history_max_items <= 0:
            raise ConfigurationError(
                f"history_max_items must be positive, got {self.history_max_items}."
            )
        if self.min_image_pixels <= 0:
            raise ConfigurationError(
                f"min_image_pixels must be positive, got {self.min_image_pixels}."
            )
        if self.min_image_pixels > self.max_image_pixels:
            raise ConfigurationError(
                f"min_image_pixels ({self.min_image_pixels}) must not exceed "
                f"max_image_pixels ({self.max_image_pixels})."
            )
        if not self.user_id:
            raise ConfigurationError("user_id cannot be empty.")

        provider = self.default_image_provider
        if provider not in KNOWN_IMAGE_PROVIDERS:
            raise ConfigurationError(
                f"Unknown default_image_provider: {provider!r}. "
                f"Must be one of: {', '.join(KNOWN_IMAGE_PROVIDERS)}."
            )
        if provider == "together" and not self.together_api_key:
            raise ConfigurationError(
                "Together API key is required when default provider is together. "
                "Set TOGETHER_API_KEY environment variable or provide it explicitly."
            )
        if provider == "openrouter":
            if not self.openrouter_api_key:
                raise ConfigurationError(
                    "OpenRouter API key is required when default provider is openrouter. "
                    "Set OPENROUTER_API_KEY environment variable or provide it explicitly."
                )
            if not self.openrouter_api_key.startswith("sk-"):
                raise ConfigurationError(
                    "OpenRouter API key appears to be invalid. It should start with 'sk-'."
                )

        self._validated = True

    def is_valid(self) -> bool:
        """Return True if validate() has been called successfully."""
        return self._validated

    def set_api_key(self, api_key: str, provider: str | None = None) -> None:
        """
        Set the API key for an image provider (default: the configured default provider).

        Raises:
            ConfigurationError: If the key is empty or the provider is unknown
        """
        if not api_key:
            raise ConfigurationError("API key cannot be empty")
        provider = provider or self.default_image_provider
        if provider == "together":
            self.together_api_key = api_key
        elif provider == "openrouter":
            self.openrouter_api_key = api_key
        else:
            raise ConfigurationError(f"Unknown image provider: {provider!r}")
        self._validated = False  # Need to revalidate

    def set_imgbb_api_key(self, api_key: str) -> None:
        """Set the imgbb API key used when creating elements."""
        if not api_key:
            raise ConfigurationError("imgbb API key cannot be empty")
        self.imgbb_api_key = api_key

    def set_image_model(self, model: str) -> None:
        """
        Set the default image generation model.

        Raises:
            ConfigurationError: If model is empty
        """
        if not model:
            raise ConfigurationError("Model ID cannot be empty")

        self.default_image_model = model


# Global configuration instance
_global_config: Config | None = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        The global Config instance
    """
    global _global_config
    if _global_config is None:
        _global_config = Config.from_env()
    return _global_config


def set_config(config: Config) -> None:
    """
    Set the global configuration instance.

    Args:
        config: The Config instance to use globally
    """
    global _global_config
    _global_config = config
