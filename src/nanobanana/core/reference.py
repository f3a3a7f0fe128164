"""
Reference image handling for nanobanana.

This module loads, validates, resizes and base64-encodes images that are sent
along with a prompt: element images before they are uploaded to the image host,
and ad-hoc uploads attached to a single generation.
"""

import base64
import hashlib
import io
import time
from pathlib import Path

from PIL import Image

from nanobanana.core.config import Config, get_config
from nanobanana.logging_config import get_logger
from nanobanana.utils.exceptions import ImageProcessingError, ValidationError

logger = get_logger(__name__)

# Supported image formats
SUPPORTED_FORMATS = {"PNG", "JPEG", "JPG", "WEBP", "HEIC", "HEIF"}


def _register_heif() -> None:
    """Enable HEIC/HEIF decoding when pillow-heif is installed."""
    try:
        from pillow_heif import register_heif_opener

        register_heif_opener()
    except ImportError:
        pass  # HEIF support not available


def _infer_format_from_magic(data: bytes) -> str | None:
    """Infer image format from magic bytes. Returns format name (e.g. PNG, JPEG) or None."""
    if len(data) < 12:
        return None
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "PNG"
    if data[:2] == b"\xff\xd8":
        return "JPEG"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "WEBP"
    if data[4:12] in (b"ftypheic", b"ftypheix", b"ftypmif1"):
        return "HEIC"
    return None


def _normalize_format(fmt: str | None) -> str | None:
    """Normalize format to a key in SUPPORTED_FORMATS (JPG -> JPEG, image/png -> PNG)."""
    if not fmt:
        return None
    s = fmt.strip().lower()
    if s.startswith("image/"):
        s = s.split("/", 1)[1]
    u = s.upper()
    if u == "JPG":
        return "JPEG"
    return u if u in SUPPORTED_FORMATS else None


def strip_data_url_prefix(value: str) -> str:
    """
    Return the base64 payload of a data URL; other strings are returned unchanged.

    "data:image/png;base64,AAAA" -> "AAAA". Anything containing a comma is split
    at the first comma, as the image host expects bare base64.
    """
    if "," in value:
        return value.split(",", 1)[1]
    return value


def _parse_data_url(data_url: str) -> tuple[bytes, str | None]:
    """
    Parse a data URL (data:image/xxx;base64,yyy) into raw bytes and format hint.

    Raises:
        ValidationError: If the string is not a base64 data URL
    """
    data_url = data_url.strip()
    if not data_url.startswith("data:"):
        raise ValidationError("Not a data URL", field="image")
    idx = data_url.find(";base64,")
    if idx == -1:
        raise ValidationError("Data URL missing ;base64, part", field="image")
    payload = decode_base64_image(data_url[idx + 8 :])
    mime = data_url[5:idx].strip().lower()
    fmt = mime.split("/", 1)[1].split("+")[0].strip() if mime.startswith("image/") else None
    return payload, _normalize_format(fmt)


def decode_base64_image(value: str) -> bytes:
    """
    Decode base64 image data (bare or data URL).

    Raises:
        ValidationError: If the payload is empty or not valid base64
    """
    payload = strip_data_url_prefix(value.strip())
    if not payload:
        raise ValidationError("Image data is empty", field="image")
    try:
        return base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise ValidationError(f"Invalid base64 image data: {e}", field="image") from e


def load_image(source: str | Path | bytes, format_hint: str | None = None) -> Image.Image:
    """
    Load an image from a file path, raw bytes or a data URL.

    Args:
        source: Path to image file, raw image bytes, or data URL string
        format_hint: Optional format/MIME hint when source is bytes (e.g. 'PNG', 'image/jpeg')

    Returns:
        Loaded PIL Image

    Raises:
        ValidationError: If format is unsupported or cannot be inferred
        ImageProcessingError: If image cannot be decoded
        FileNotFoundError: If a path source does not exist
    """
    if isinstance(source, str) and source.strip().startswith("data:"):
        source, parsed_fmt = _parse_data_url(source)
        format_hint = format_hint or parsed_fmt

    _register_heif()

    if isinstance(source, bytes):
        if not source:
            raise ValidationError("Image data is empty", field="image")
        fmt = _normalize_format(format_hint) or _normalize_format(_infer_format_from_magic(source))
        if not fmt:
            raise ValidationError(
                "Could not determine image format from bytes. "
                f"Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}",
                field="image_format",
            )
        try:
            image = Image.open(io.BytesIO(source))
            image.load()
            return image
        except Exception as e:
            raise ImageProcessingError(f"Failed to load image from bytes: {e}") from e

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    suffix = _normalize_format(path.suffix.lstrip("."))
    if suffix is None:
        raise ValidationError(
            f"Unsupported image format: {path.suffix.upper().lstrip('.')}. "
            f"Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}",
            field="image_format",
        )
    try:
        image = Image.open(path)
        image.load()
        return image
    except Exception as e:
        raise ImageProcessingError(f"Failed to load image: {e}", image_path=str(path)) from e


def resize_image(
    image: Image.Image,
    max_pixels: int,
    min_pixels: int,
) -> Image.Image:
    """
    Downscale an image to at most max_pixels, keeping its aspect ratio.

    Raises:
        ValidationError: If the result would have fewer than min_pixels
    """
    width, height = image.size
    current_pixels = width * height

    if current_pixels <= max_pixels:
        out_w, out_h = width, height
    else:
        scale_factor = (max_pixels / current_pixels) ** 0.5
        out_w = max(1, int(width * scale_factor))
        out_h = max(1, int(height * scale_factor))
        logger.debug(
            "Reference image resizing %dx%d -> %dx%d max_pixels=%s",
            width,
            height,
            out_w,
            out_h,
            max_pixels,
        )

    if out_w * out_h < min_pixels:
        raise ValidationError(
            f"Reference image too small: {out_w}x{out_h} ({out_w * out_h} pixels) "
            f"is below minimum {min_pixels} pixels.",
            field="image",
        )

    if (out_w, out_h) != (width, height):
        image = image.resize((out_w, out_h), Image.Resampling.LANCZOS)
    return image


def convert_to_rgb(image: Image.Image) -> Image.Image:
    """Convert an image to RGB, compositing any transparency onto white."""
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    return image.convert("RGB")


def encode_image_base64(image: Image.Image, format: str = "JPEG") -> str:
    """
    Encode a PIL Image to a base64 string.

    Raises:
        ImageProcessingError: If encoding fails
    """
    try:
        buffer = io.BytesIO()
        image.save(buffer, format=format)
        return base64.b64encode(buffer.getvalue()).decode("utf-8")
    except Exception as e:
        raise ImageProcessingError(f"Failed to encode image: {e}") from e


def process_reference_image(
    source: str | Path | bytes,
    format_hint: str | None = None,
    config: Config | None = None,
) -> tuple[str, str]:
    """
    Prepare an image for upload or for sending with a prompt.

    Loads the image (path, bytes or data URL), enforces the configured pixel
    bounds, converts to RGB and encodes it as base64 JPEG.

    Returns:
        Tuple of (base64_jpeg, sha256 of the source bytes)

    Raises:
        ValidationError: If the format is unsupported or the image is too small
        ImageProcessingError: If decoding or encoding fails
        FileNotFoundError: If a path source does not exist
    """
    cfg = config or get_config()
    start_time = time.time()

    if isinstance(source, bytes):
        raw = source
    elif isinstance(source, str) and source.strip().startswith("data:"):
        raw = decode_base64_image(source)
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Image file not found: {path}")
        raw = path.read_bytes()

    image = load_image(source, format_hint)
    image = resize_image(image, max_pixels=cfg.max_image_pixels, min_pixels=cfg.min_image_pixels)
    image = convert_to_rgb(image)
    encoded = encode_image_base64(image, format="JPEG")

    w, h = image.size
    logger.info(
        "Processed reference image in %.2fs dimensions=%dx%d", time.time() - start_time, w, h
    )
    return encoded, hashlib.sha256(raw).hexdigest()


def create_image_data_url(encoded_image: str, mime_type: str = "image/jpeg") -> str:
    """Create a data URL from a base64 encoded image."""
    return f"data:{mime_type};base64,{encoded_image}"


def as_image_url(value: str) -> str:
    """Return value as something an API accepts as an image URL (http(s) or data URL)."""
    stripped = value.strip()
    if stripped.startswith(("http://", "https://", "data:")):
        return stripped
    return create_image_data_url(stripped)
