"""
HTTP helpers shared by the image generation providers.

Status-code mapping, debug payload logging, image decoding and the
cancellable request loop (request in a worker thread, caller polls
cancel_check).
"""

import base64
import binascii
import io
import json
import threading
from collections.abc import Callable
from typing import Any, TypeVar

import requests
from PIL import Image

from nanobanana.logging_config import get_logger, redact_image_data
from nanobanana.utils.exceptions import (
    APIError,
    CancellationError,
    NetworkError,
    RequestTimeoutError,
)

logger = get_logger(__name__)

T = TypeVar("T")

POLL_INTERVAL = 0.25
_RAW_TEXT_LOG_MAX = 2000


def raise_for_status(response: requests.Response, service: str, model: str) -> None:
    """Map non-200 responses to APIError with a user-facing message."""
    status = response.status_code
    if status == 200:
        return
    if status == 401:
        raise APIError(
            f"Authentication failed. Please check your {service} API key.",
            status_code=401,
            response=response.text,
        )
    if status == 404:
        raise APIError(
            f"Model not found or endpoint unavailable: {model}",
            status_code=404,
            response=response.text,
        )
    if status == 429:
        raise APIError(
            "Rate limit exceeded. Please wait before making more requests.",
            status_code=429,
            response=response.text,
        )
    if status >= 500:
        raise APIError(
            f"{service} service error: {status}",
            status_code=status,
            response=response.text,
        )
    raise APIError(
        f"API request failed with status {status}: {response.text}",
        status_code=status,
        response=response.text,
    )


def log_request_payload(payload: dict[str, Any]) -> None:
    logger.info(
        "API request payload (image data truncated): %s",
        json.dumps(redact_image_data(payload), indent=2, default=str),
    )


def log_response_body(response: requests.Response) -> None:
    try:
        result = response.json()
    except ValueError:
        text = response.text
        if len(text) > _RAW_TEXT_LOG_MAX:
            text = text[:_RAW_TEXT_LOG_MAX] + f"... <truncated, {len(response.text)} chars total>"
        logger.info("API response (raw text): %s", text)
        return
    logger.info(
        "API response (image data truncated): %s",
        json.dumps(redact_image_data(result), indent=2, default=str),
    )


def parse_json(response: requests.Response) -> dict[str, Any]:
    try:
        result = response.json()
    except ValueError as e:
        raise APIError(
            f"Failed to parse API response as JSON: {str(e)}",
            response=response.text,
        ) from e
    if not isinstance(result, dict):
        raise APIError("Unexpected API response shape", response=response.text)
    return result


def decode_image(value: str) -> tuple[Image.Image, str]:
    """
    Decode base64 image data (bare or data URL) into a PIL image and its base64 payload.

    Raises:
        APIError: If the data is not valid base64 or not a readable image
    """
    payload = value.split(",", 1)[1] if value.startswith("data:") else value
    try:
        raw = base64.b64decode(payload, validate=True)
        image = Image.open(io.BytesIO(raw)).copy()
    except (binascii.Error, ValueError, OSError) as e:
        raise APIError(f"Failed to decode image from API response: {str(e)}") from e
    return image, payload


def run_request(
    do_request: Callable[[], T],
    service: str,
    timeout: int,
    cancel_check: Callable[[], bool] | None,
) -> T:
    """
    Run do_request, mapping requests exceptions to nanobanana errors.

    With a cancel_check the request runs in a daemon thread and cancel_check is
    polled every POLL_INTERVAL seconds; a True result raises CancellationError
    and the worker is abandoned.
    """

    def call() -> T:
        try:
            return do_request()
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(
                f"Request timed out after {timeout} seconds. "
                "The generation may be taking longer than expected."
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(
                f"Failed to connect to {service} API. Please check your internet connection.",
                original_error=e,
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"Network error during API request: {str(e)}", original_error=e
            ) from e

    if cancel_check is None:
        return call()

    result_holder: list[T | None] = [None]
    exc_holder: list[BaseException | None] = [None]

    def worker() -> None:
        try:
            result_holder[0] = call()
        except BaseException as e:
            exc_holder[0] = e

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    while True:
        thread.join(timeout=POLL_INTERVAL)
        if not thread.is_alive():
            break
        try:
            cancelled = cancel_check()
        except Exception:
            logger.debug("cancel_check raised; ignoring", exc_info=True)
            cancelled = False
        if cancelled:
            raise CancellationError("Image generation was cancelled.")

    if exc_holder[0] is not None:
        raise exc_holder[0]
    assert result_holder[0] is not None
    return result_holder[0]
