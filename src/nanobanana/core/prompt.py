"""
Prompt handling for nanobanana.

This module validates prompts and resolves ``@handle`` element references.
``parse_prompt_for_elements`` rewrites every handle into a positional
"Reference Image N" placeholder; N is assigned in order of each handle's first
appearance, so the caller can line up the referenced images with N.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from nanobanana.utils.exceptions import ValidationError

# Handles inside prompts: "@" + ASCII word characters. Hyphens end the match,
# unlike ELEMENT_HANDLE_PATTERN in core.schemas.
PROMPT_HANDLE_PATTERN = re.compile(r"@\w+", re.ASCII)

REFERENCE_PLACEHOLDER = "Reference Image {index}"


@dataclass(frozen=True)
class Reference:
    """A distinct handle found in a prompt and its 1-based reference index."""

    handle: str
    ref_index: int


@dataclass
class ParsedPrompt:
    """Result of parse_prompt_for_elements."""

    cleaned_prompt: str
    references: list[Reference] = field(default_factory=list)

    @property
    def handles(self) -> list[str]:
        """Handles in ref_index order."""
        return [ref.handle for ref in self.references]

    def as_dict(self) -> dict[str, Any]:
        """JSON-friendly representation (used by the CLI ``parse --json``)."""
        return {
            "cleaned_prompt": self.cleaned_prompt,
            "references": [
                {"handle": ref.handle, "ref_index": ref.ref_index} for ref in self.references
            ],
        }


def reference_text(ref_index: int) -> str:
    """Placeholder text that replaces a handle, e.g. 'Reference Image 2'."""
    return REFERENCE_PLACEHOLDER.format(index=ref_index)


def parse_prompt_for_elements(prompt: str) -> ParsedPrompt:
    """
    Replace @handles in a prompt with "Reference Image N" placeholders.

    Each distinct handle gets index len(seen) + 1 the first time it is seen, so
    indices run 1..N in first-appearance order. Every occurrence of a handle is
    replaced by the same placeholder. Replacement is a literal replace-all per
    handle, in index order: when one handle is a prefix of a later one
    ("@Max", "@Maxine") the prefix inside the longer handle is rewritten too.

    Never raises; prompts without handles come back unchanged with no references.

    Args:
        prompt: Raw prompt text from the user

    Returns:
        ParsedPrompt with the cleaned prompt and references sorted by ref_index
    """
    seen: dict[str, int] = {}
    for match in PROMPT_HANDLE_PATTERN.finditer(prompt):
        handle = match.group(0)
        if handle not in seen:
            seen[handle] = len(seen) + 1

    references = [Reference(handle=h, ref_index=i) for h, i in seen.items()]
    references.sort(key=lambda ref: ref.ref_index)

    cleaned = prompt
    for ref in references:
        cleaned = cleaned.replace(ref.handle, reference_text(ref.ref_index))

    return ParsedPrompt(cleaned_prompt=cleaned, references=references)


def extract_handles(prompt: str) -> list[str]:
    """Return the distinct @handles in a prompt, in order of first appearance."""
    return list(dict.fromkeys(PROMPT_HANDLE_PATTERN.findall(prompt)))


def validate_prompt(prompt: str) -> None:
    """
    Validate a text prompt.

    Args:
        prompt: The prompt to validate

    Raises:
        ValidationError: If prompt is empty or only whitespace
    """
    if not prompt or not prompt.strip():
        raise ValidationError("Prompt cannot be empty", field="prompt")
