"""
Image checks for both directions of the pipeline.

Uploads (the base photo) are validated by magic bytes and decoded with Pillow
before any provider call is made. Generated payloads come back as bare base64
and only need their MIME type sniffed to be served as data URLs.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from fastapi import HTTPException, status
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# (mime type, offset, signature); WEBP also needs the RIFF header at 0.
_SIGNATURES = (
    ("image/png", 0, b"\x89PNG\r\n\x1a\n"),
    ("image/jpeg", 0, b"\xff\xd8\xff"),
    ("image/webp", 8, b"WEBP"),
)

ALLOWED_IMAGE_MIME_TYPES = frozenset(mime for mime, _, _ in _SIGNATURES)
MAX_UPLOAD_SIZE_BYTES = 10 * 1024 * 1024
MIN_IMAGE_SIDE = 64
MAX_IMAGE_SIDE = 8192
MAX_IMAGE_PIXELS = 4096 * 4096

# Generated payloads without a recognizable signature are served as JPEG.
DEFAULT_GENERATED_MIME_TYPE = "image/jpeg"

IMAGE_MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-jpeg": "image/jpeg",
    "image/jfif": "image/jpeg",
    "image/x-png": "image/png",
    "image/apng": "image/png",
    "image/x-webp": "image/webp",
}


@dataclass(frozen=True)
class ImagePayloadInfo:
    mime_type: str
    width: int
    height: int


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def normalize_image_mime_type(claimed_mime_type: str) -> str:
    """``"Image/JPG; q=1"`` -> ``"image/jpeg"``; empty stays empty."""
    mime_type = (claimed_mime_type or "").split(",", 1)[0].split(";", 1)[0]
    mime_type = mime_type.strip().strip("\"'").lower()
    return IMAGE_MIME_ALIASES.get(mime_type, mime_type)


def sniff_image_mime_type(content: bytes) -> Optional[str]:
    """Return the MIME type implied by the leading bytes, or None."""
    if not content:
        return None
    for mime_type, offset, signature in _SIGNATURES:
        if content[offset:offset + len(signature)] != signature:
            continue
        if mime_type == "image/webp" and not content.startswith(b"RIFF"):
            continue
        return mime_type
    return None


def sniff_base64_image_mime_type(payload: str) -> Optional[str]:
    """Sniff a base64 payload from its first decoded bytes (enough for any signature)."""
    if not payload:
        return None
    head = payload[:24]
    try:
        decoded = base64.b64decode(head + "=" * (-len(head) % 4))
    except (binascii.Error, ValueError):
        return None
    return sniff_image_mime_type(decoded)


def payload_to_data_url(payload: str) -> str:
    mime_type = sniff_base64_image_mime_type(payload) or DEFAULT_GENERATED_MIME_TYPE
    return f"data:{mime_type};base64,{payload}"


def _decoded_size(content: bytes) -> tuple[int, int]:
    try:
        with Image.open(BytesIO(content)) as image:
            image.load()
            return image.size
    except (UnidentifiedImageError, OSError, ValueError):
        raise _bad_request("Unsupported or corrupted image file. Please upload PNG, JPG, or WEBP.")


def validate_uploaded_image_payload(
    content: bytes,
    claimed_mime_type: Optional[str] = None,
    *,
    max_size: int = MAX_UPLOAD_SIZE_BYTES,
    min_side: int = MIN_IMAGE_SIDE,
    max_width: int = MAX_IMAGE_SIDE,
    max_height: int = MAX_IMAGE_SIDE,
    max_pixels: int = MAX_IMAGE_PIXELS,
) -> ImagePayloadInfo:
    """
    Validate the uploaded base photo and return its real type and size.

    The sniffed type always wins over the client's Content-Type; a mismatch
    is only logged since browsers routinely mislabel images.
    """
    if len(content) < 12:
        raise _bad_request("File too small to be a valid image")
    if len(content) > max_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {max_size // (1024 * 1024)}MB",
        )

    mime_type = sniff_image_mime_type(content)
    if mime_type not in ALLOWED_IMAGE_MIME_TYPES:
        raise _bad_request("Invalid file type. Allowed: PNG, JPG, WEBP")

    claimed = normalize_image_mime_type(claimed_mime_type or "")
    if claimed in ALLOWED_IMAGE_MIME_TYPES and claimed != mime_type:
        logger.warning("Upload claimed %s but bytes are %s; using %s", claimed, mime_type, mime_type)

    width, height = _decoded_size(content)
    if min(width, height) < min_side:
        raise _bad_request(
            f"Image is too small ({width}x{height}). Minimum supported size is {min_side}x{min_side}."
        )
    if width > max_width or height > max_height or width * height > max_pixels:
        raise _bad_request(
            f"Image is too large ({width}x{height}). "
            f"Maximum supported size is {max_width}x{max_height}."
        )

    return ImagePayloadInfo(mime_type=mime_type, width=width, height=height)
