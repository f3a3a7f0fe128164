"""
End-to-end generation: prompt with @handles in, generated image out.

run_generation is what the CLI and UI call. It resolves element handles to
their hosted images, lines the images up with the "Reference Image N"
placeholders, appends ad-hoc uploads, generates and records the result in
history.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from nanobanana.core.elements import ElementStore
from nanobanana.core.history import GeneratedImage, HistoryStore
from nanobanana.core.image_gen import GenerationResult, generate_image
from nanobanana.core.prompt import ParsedPrompt, parse_prompt_for_elements, validate_prompt
from nanobanana.core.resolutions import get_resolution
from nanobanana.logging_config import get_logger, log_prompt

logger = get_logger(__name__)


@dataclass
class GenerationOutcome:
    result: GenerationResult
    parsed: ParsedPrompt
    input_images: list[str] = field(default_factory=list)
    history_entry: GeneratedImage | None = None


def run_generation(
    prompt: str,
    aspect_ratio: str,
    quality: str,
    user_id: str,
    element_store: ElementStore,
    uploaded_images: Iterable[str] = (),
    history: HistoryStore | None = None,
    **generate_kwargs: Any,
) -> GenerationOutcome:
    """
    Parse, resolve, generate and record one image.

    Element images come first, in ref_index order; handles without an element
    are skipped, so later placeholders can point past the end of the list.
    uploaded_images (base64, data URLs or URLs) follow in the given order.

    Args:
        prompt: Raw prompt, may contain @handles
        aspect_ratio: Aspect ratio value, e.g. "16:9"
        quality: Quality tier, e.g. "standard"
        user_id: Owner whose elements the handles are looked up in
        element_store: Store used to resolve handles
        uploaded_images: Extra reference images appended after element images
        history: When given, the result is saved to it
        **generate_kwargs: Passed through to generate_image (model, provider, config, ...)

    Raises:
        ValidationError: If the prompt is blank or the aspect ratio/quality is unknown
        APIError, NetworkError, RequestTimeoutError, CancellationError: From generation
    """
    validate_prompt(prompt)
    parsed = parse_prompt_for_elements(prompt)
    log_prompt(logger, "Prompt (raw)", prompt)
    log_prompt(logger, "Prompt (cleaned)", parsed.cleaned_prompt)

    input_images = element_store.resolve_references(user_id, parsed.references)
    resolved_count = len(input_images)
    input_images.extend(uploaded_images)
    logger.info(
        "Resolved %d of %d references, %d uploaded image(s)",
        resolved_count,
        len(parsed.references),
        len(input_images) - resolved_count,
    )

    resolution = get_resolution(aspect_ratio, quality)
    result = generate_image(
        parsed.cleaned_prompt,
        resolution,
        input_images=input_images,
        **generate_kwargs,
    )

    entry = None
    if history is not None:
        entry = history.save(result.base64, prompt=parsed.cleaned_prompt, resolution=resolution)

    return GenerationOutcome(
        result=result, parsed=parsed, input_images=input_images, history_entry=entry
    )
