"""
Image hosting via the imgbb API.

Element images are uploaded to imgbb so image generation backends can fetch
them by public URL.
"""

import time
from typing import Any

import requests

from nanobanana.core.config import Config, get_config
from nanobanana.core.reference import strip_data_url_prefix
from nanobanana.logging_config import get_logger, redact_image_data
from nanobanana.utils.exceptions import (
    APIError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)

logger = get_logger(__name__)


def _body_status(result: dict[str, Any], default: int) -> int:
    """imgbb echoes an HTTP-like status in the body; ignore it unless numeric."""
    status = result.get("status")
    if isinstance(status, bool):
        return default
    if isinstance(status, int):
        return status
    if isinstance(status, str) and status.strip().isdigit():
        return int(status)
    return default


def upload_to_imgbb(
    base64_image: str,
    api_key: str | None = None,
    config: Config | None = None,
    timeout: int | None = None,
) -> str:
    """
    Upload a base64 image to imgbb and return its public URL.

    Args:
        base64_image: Base64 image data; a data URL prefix is stripped
        api_key: Optional imgbb key (defaults to config value)
        config: Optional config; if None, uses get_config()
        timeout: Optional timeout in seconds (defaults to config.upload_timeout)

    Returns:
        The hosted image URL (data.url of the imgbb response)

    Raises:
        ValidationError: If the API key or image data is missing
        APIError: If imgbb rejects the upload or returns an unusable response
        RequestTimeoutError: If the request times out
        NetworkError: If the request fails to connect
    """
    config = config or get_config()
    if api_key is None:
        api_key = config.imgbb_api_key
    if not api_key:
        raise ValidationError(
            "imgbb API key is required to upload element images. Set IMGBB_API_KEY.",
            field="imgbb_api_key",
        )
    if timeout is None:
        timeout = config.upload_timeout

    image_data = strip_data_url_prefix(base64_image)
    if not image_data:
        raise ValidationError("Image data is empty", field="image")

    url = config.imgbb_upload_url
    logger.info("Uploading image to imgbb size=%d chars", len(image_data))
    start_time = time.time()
    try:
        response = requests.post(
            url,
            data={"key": api_key, "image": image_data},
            timeout=timeout,
        )
    except requests.exceptions.Timeout as e:
        raise RequestTimeoutError(f"imgbb upload timed out after {timeout} seconds.") from e
    except requests.exceptions.ConnectionError as e:
        raise NetworkError(
            "Failed to connect to imgbb. Please check your internet connection.",
            original_error=e,
        ) from e
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Network error during imgbb upload: {e}", original_error=e) from e

    logger.debug(
        "imgbb response status=%s time=%.2fs", response.status_code, time.time() - start_time
    )

    if not response.ok:
        raise APIError(
            f"imgbb upload failed: {response.reason or response.status_code}",
            status_code=response.status_code,
            response=response.text,
        )

    try:
        result: dict[str, Any] = response.json()
    except ValueError as e:
        raise APIError(
            f"imgbb upload failed: response is not JSON ({e})", response=response.text
        ) from e

    if config.debug_api:
        logger.info("imgbb response (image data truncated): %s", redact_image_data(result))

    if not result.get("success"):
        raise APIError(
            "imgbb upload failed: API returned unsuccessful status",
            status_code=_body_status(result, response.status_code),
            response=str(result),
        )

    hosted_url = (result.get("data") or {}).get("url")
    if not hosted_url:
        raise APIError("imgbb upload failed: no URL in response", response=str(result))

    logger.info("Uploaded image to imgbb in %.1fs", time.time() - start_time)
    return str(hosted_url)
