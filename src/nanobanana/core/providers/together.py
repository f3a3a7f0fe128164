"""
Together AI image generation provider.

Posts to the OpenAI-style /images/generations endpoint with explicit width and
height; reference images go in input_images as public URLs (element images
hosted on imgbb) or data URLs.
"""

import time
from collections.abc import Callable
from typing import Any

import requests

from nanobanana.core.config import Config
from nanobanana.core.image_gen import GenerationResult
from nanobanana.core.providers._http import (
    decode_image,
    log_request_payload,
    log_response_body,
    parse_json,
    raise_for_status,
    run_request,
)
from nanobanana.core.reference import as_image_url
from nanobanana.core.resolutions import parse_resolution
from nanobanana.logging_config import get_logger, log_prompt, redact_image_data
from nanobanana.utils.exceptions import APIError, ValidationError

logger = get_logger(__name__)

SERVICE_NAME = "Together"


class TogetherProvider:
    """Image generation provider for the Together AI API."""

    def _build_payload(
        self, prompt: str, model: str, resolution: str, input_images: list[str]
    ) -> dict[str, Any]:
        width, height = parse_resolution(resolution)
        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "width": width,
            "height": height,
            "n": 1,
            "response_format": "base64",
        }
        if input_images:
            payload["input_images"] = [as_image_url(img) for img in input_images]
        return payload

    def _parse_response(
        self,
        result: dict[str, Any],
        model: str,
        prompt: str,
        resolution: str,
        input_count: int,
        generation_time: float,
    ) -> GenerationResult:
        """Extract the first image from data[0] (b64_json, or a data URL in url)."""
        data = result.get("data") or []
        first = data[0] if data and isinstance(data[0], dict) else {}
        encoded = first.get("b64_json") or ""
        if not encoded:
            url = first.get("url") or ""
            if url.startswith("data:"):
                encoded = url
        if not encoded:
            raise APIError("Image generation failed", response=str(redact_image_data(result)))
        image, payload = decode_image(encoded)
        return GenerationResult(
            image=image,
            _format="png",
            generation_time=generation_time,
            model_used=model,
            prompt_used=prompt,
            resolution=resolution,
            input_image_count=input_count,
            base64=payload,
        )

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
        """Generate an image via Together AI."""
        api_key = api_key_override if api_key_override is not None else config.together_api_key
        if not api_key:
            raise ValidationError(
                "Together API key is required. Set TOGETHER_API_KEY or pass an API key.",
                field="api_key",
            )

        url = f"{config.together_base_url.rstrip('/')}/images/generations"
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        payload = self._build_payload(prompt, model, resolution, input_images)

        logger.info(
            "Generating image via Together model=%s resolution=%s input_images=%d",
            model,
            resolution,
            len(input_images),
        )
        log_prompt(logger, "Prompt (used)", prompt)

        def do_request() -> GenerationResult:
            logger.debug("API request url=%s model=%s timeout=%s", url, model, timeout)
            if config.debug_api:
                log_request_payload(payload)
            start_time = time.time()
            response = requests.post(url, headers=headers, json=payload, timeout=timeout)
            generation_time = time.time() - start_time
            logger.debug(
                "API response status=%s time=%.2fs", response.status_code, generation_time
            )
            if config.debug_api:
                log_response_body(response)
            raise_for_status(response, SERVICE_NAME, model)
            return self._parse_response(
                parse_json(response),
                model,
                prompt,
                resolution,
                len(input_images),
                generation_time,
            )

        result = run_request(do_request, SERVICE_NAME, timeout, cancel_check)
        logger.info("Generated in %.1fs model=%s", result.generation_time, result.model_used)
        return result

