"""
OpenRouter image generation provider.

Uses the chat/completions endpoint with image output; reference images are
sent as image_url content parts and the output shape as an aspect ratio.
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
from nanobanana.core.resolutions import aspect_ratio_for_resolution
from nanobanana.logging_config import get_logger, log_prompt, redact_image_data
from nanobanana.utils.exceptions import APIError, ValidationError

logger = get_logger(__name__)

SERVICE_NAME = "OpenRouter"


class OpenRouterProvider:
    """Image generation provider for the OpenRouter API."""

    def _validate_config(self, config: Config, api_key_override: str | None) -> str:
        """Return the API key to use. Raises ValidationError if it is missing."""
        api_key = api_key_override if api_key_override is not None else config.openrouter_api_key
        if not api_key:
            raise ValidationError(
                "OpenRouter API key is required. Set it via config or environment variable.",
                field="api_key",
            )
        return api_key

    def _build_payload(
        self, prompt: str, model: str, resolution: str, input_images: list[str]
    ) -> dict[str, Any]:
        content_parts: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        for img in input_images:
            content_parts.append({"type": "image_url", "image_url": {"url": as_image_url(img)}})
        return {
            "model": model,
            "modalities": ["image"],
            "messages": [{"role": "user", "content": content_parts}],
            "image_config": {"aspect_ratio": aspect_ratio_for_resolution(resolution)},
        }

    def _parse_response(
        self,
        result: dict[str, Any],
        model: str,
        prompt: str,
        resolution: str,
        input_count: int,
        generation_time: float,
    ) -> GenerationResult:
        """Extract choices[0].message.images[0].image_url.url. Raises APIError on failure."""
        try:
            images = (result.get("choices") or [{}])[0].get("message", {}).get("images", [])
        except (AttributeError, IndexError, TypeError) as e:
            raise APIError(
                f"Failed to extract image from API response: {str(e)}",
                response=str(redact_image_data(result)),
            ) from e
        if not images:
            raise APIError(
                "No images in API response. The model may not support image generation.",
                response=str(redact_image_data(result)),
            )
        image_url = (images[0].get("image_url") or {}).get("url", "")
        if not image_url:
            raise APIError("No image URL in response", response=str(redact_image_data(result)))
        image, payload = decode_image(image_url)
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
        """Generate an image via OpenRouter API."""
        api_key = self._validate_config(config, api_key_override)

        url = f"{config.openrouter_base_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        payload = self._build_payload(prompt, model, resolution, input_images)

        logger.info(
            "Generating image via OpenRouter model=%s resolution=%s input_images=%d",
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
