"""
Output resolutions by aspect ratio and quality tier.
"""

import re
from math import gcd

from nanobanana.utils.exceptions import ValidationError

DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_QUALITY = "standard"

# (value, label) in picker order
ASPECT_RATIOS: list[tuple[str, str]] = [
    ("16:9", "16:9 (Default)"),
    ("1:1", "1:1 (Square)"),
    ("9:16", "9:16 (Portrait)"),
    ("4:3", "4:3 (Standard)"),
    ("21:9", "21:9 (Cinematic)"),
]

QUALITIES: tuple[str, ...] = ("standard", "high", "ultra")

RESOLUTIONS: dict[str, dict[str, str]] = {
    "16:9": {"standard": "1376x768", "high": "2752x1536", "ultra": "5504x3072"},
    "1:1": {"standard": "1024x1024", "high": "2048x2048", "ultra": "4096x4096"},
    "9:16": {"standard": "768x1376", "high": "1536x2752", "ultra": "3072x5504"},
    "4:3": {"standard": "1200x896", "high": "2400x1792", "ultra": "4800x3584"},
    "21:9": {"standard": "1584x672", "high": "3168x1344", "ultra": "6336x2688"},
}

RESOLUTION_PATTERN = re.compile(r"^\d+x\d+$", re.ASCII)


def aspect_ratio_values() -> list[str]:
    return [value for value, _label in ASPECT_RATIOS]


def get_resolution(aspect_ratio: str, quality: str) -> str:
    """
    Return the "WxH" resolution for an aspect ratio and quality tier.

    Raises:
        ValidationError: If aspect_ratio or quality is unknown
    """
    by_quality = RESOLUTIONS.get(aspect_ratio)
    if by_quality is None:
        raise ValidationError(
            f"Unknown aspect ratio: {aspect_ratio!r}. "
            f"Must be one of: {', '.join(aspect_ratio_values())}.",
            field="aspect_ratio",
        )
    resolution = by_quality.get(quality)
    if resolution is None:
        raise ValidationError(
            f"Unknown quality: {quality!r}. Must be one of: {', '.join(QUALITIES)}.",
            field="quality",
        )
    return resolution


def parse_resolution(resolution: str) -> tuple[int, int]:
    """
    Split a "WxH" string into (width, height).

    Raises:
        ValidationError: If the string is not of the form WxH or a side is zero
    """
    if not resolution or not RESOLUTION_PATTERN.fullmatch(resolution):
        raise ValidationError(
            f"Invalid resolution: {resolution!r}. Expected WIDTHxHEIGHT, e.g. 1376x768.",
            field="resolution",
        )
    width_s, height_s = resolution.split("x", 1)
    width, height = int(width_s), int(height_s)
    if width == 0 or height == 0:
        raise ValidationError(
            f"Invalid resolution: {resolution!r}. Width and height must be positive.",
            field="resolution",
        )
    return width, height


def aspect_ratio_for_resolution(resolution: str) -> str:
    """
    Return the aspect ratio ("W:H") of a resolution string.

    Table resolutions map back to their picker value (1376x768 -> "16:9");
    anything else is reduced by the greatest common divisor.
    """
    for ratio, by_quality in RESOLUTIONS.items():
        if resolution in by_quality.values():
            return ratio
    width, height = parse_resolution(resolution)
    divisor = gcd(width, height)
    return f"{width // divisor}:{height // divisor}"
