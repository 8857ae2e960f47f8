"""Image decoding, validation and compression for photo capture."""

import base64
import binascii
import io
import logging
import re

from PIL import Image, ImageOps, UnidentifiedImageError

from hunt_sync.domain.uploads import ImageInput
from hunt_sync.errors import ValidationError

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[^,]*)?;base64,(?P<data>.*)$", re.S
)


def load_image_input(source: ImageInput | bytes | str, filename: str) -> ImageInput:
    """Normalize a file, raw bytes or inline ``data:`` URL to ``ImageInput``."""
    if isinstance(source, ImageInput):
        return source
    if isinstance(source, bytes):
        return ImageInput(
            content=source, mime_type=detect_mime_type(source), filename=filename
        )
    match = _DATA_URL.match(source)
    if match is None:
        raise ValidationError("Inline image must be a base64 data URL")
    try:
        content = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Inline image is not valid base64") from exc
    mime_type = match.group("mime") or "application/octet-stream"
    return ImageInput(content=content, mime_type=mime_type, filename=filename)


def detect_mime_type(content: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    if content[:6] in {b"GIF87a", b"GIF89a"}:
        return "image/gif"
    return "application/octet-stream"


def validate_image(
    image: ImageInput, max_upload_bytes: int, allow_large_uploads: bool
) -> None:
    """Reject non-images and, unless allowed, oversized files."""
    if not image.content:
        raise ValidationError("No file provided")
    if not image.mime_type.startswith("image/"):
        raise ValidationError(
            "Please select a valid image file (JPEG, PNG, GIF, or WebP)"
        )
    if not allow_large_uploads and image.size > max_upload_bytes:
        size_mb = image.size / 1024 / 1024
        max_mb = max_upload_bytes / 1024 / 1024
        raise ValidationError(
            f"Image is too large ({size_mb:.2f}MB). "
            f"Please choose a smaller photo (max {max_mb:.0f}MB)."
        )


def compress_image(image: ImageInput, max_dimension: int, quality: int) -> ImageInput:
    """Downscale to ``max_dimension`` on the longest side and re-encode as JPEG.

    Raises whatever Pillow raises for unreadable data; callers treat
    compression as best effort.
    """
    with Image.open(io.BytesIO(image.content)) as opened:
        picture = ImageOps.exif_transpose(opened)
        picture.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        if picture.mode not in {"RGB", "L"}:
            picture = picture.convert("RGB")
        output = io.BytesIO()
        picture.save(output, format="JPEG", quality=quality, optimize=True)
    stem = image.filename.rsplit(".", 1)[0] or "photo"
    return ImageInput(
        content=output.getvalue(), mime_type="image/jpeg", filename=f"{stem}.jpg"
    )


def compress_or_original(
    image: ImageInput, max_dimension: int, quality: int
) -> ImageInput:
    """Compress, falling back to the original bytes if Pillow cannot."""
    try:
        compressed = compress_image(image, max_dimension, quality)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning(
            "Compression failed for %s, using original: %s", image.filename, exc
        )
        return image
    logger.info(
        "Compressed %s: %s -> %s bytes", image.filename, image.size, compressed.size
    )
    return compressed
