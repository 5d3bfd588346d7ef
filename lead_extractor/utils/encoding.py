"""
Image encoding for transport to the vision API.

Turns an uploaded screenshot (raw bytes, a path on disk, or a file-like
upload object) into a self-contained base64 data URI. The original bytes
are embedded as-is; nothing is re-compressed.
"""

import base64
import logging
import mimetypes
from pathlib import Path
from typing import Any, Optional

from .config import settings

logger = logging.getLogger(__name__)


class EncodingError(Exception):
    """Raised when an image payload cannot be read or encoded."""

    pass


# Magic-byte prefixes for the image formats phones and browsers produce
_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
]

_HEIF_BRANDS = {b"heic", b"heix", b"hevc", b"hevx", b"mif1", b"msf1"}


def detect_mime_type(data: bytes, label: Optional[str] = None) -> Optional[str]:
    """
    Detect the MIME type of image bytes.

    Args:
        data: Raw image bytes
        label: Optional filename used as a fallback hint

    Returns:
        MIME type string, or None if the data is not a recognizable image
    """
    for signature, mime in _SIGNATURES:
        if data.startswith(signature):
            return mime

    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"

    if data[4:8] == b"ftyp" and data[8:12] in _HEIF_BRANDS:
        return "image/heic"

    if label:
        guessed, _ = mimetypes.guess_type(label)
        if guessed and guessed.startswith("image/"):
            return guessed

    return None


def read_payload(payload: Any) -> bytes:
    """
    Read raw bytes from a supported payload.

    Accepts bytes, a filesystem path, or any object exposing ``getvalue()``
    (Streamlit's UploadedFile, ``io.BytesIO``) or ``read()``.

    Raises:
        EncodingError: If the payload cannot be read
    """
    try:
        if isinstance(payload, (bytes, bytearray, memoryview)):
            return bytes(payload)
        if isinstance(payload, (str, Path)):
            return Path(payload).read_bytes()
        if hasattr(payload, "getvalue"):
            return bytes(payload.getvalue())
        if hasattr(payload, "read"):
            if hasattr(payload, "seek"):
                payload.seek(0)
            return bytes(payload.read())
    except (OSError, ValueError, TypeError) as e:
        raise EncodingError(f"Cannot read image payload: {e}") from e

    raise EncodingError(f"Unsupported payload type: {type(payload).__name__}")


def encode_image(payload: Any, label: Optional[str] = None) -> str:
    """
    Encode an image payload as a base64 data URI.

    Args:
        payload: Raw image resource (bytes, path or file-like object)
        label: Original filename, used for logging and MIME fallback

    Returns:
        ``data:<mime>;base64,<data>`` string

    Raises:
        EncodingError: If the payload is unreadable, empty, too large,
            or not an image
    """
    data = read_payload(payload)
    name = label or "<payload>"

    if not data:
        raise EncodingError(f"Image payload is empty: {name}")

    if len(data) > settings.max_image_bytes:
        raise EncodingError(
            f"Image {name} is {len(data)} bytes, "
            f"limit is {settings.max_image_bytes}"
        )

    mime = detect_mime_type(data, label)
    if mime is None:
        raise EncodingError(f"Not a recognizable image: {name}")

    b64 = base64.b64encode(data).decode("ascii")
    logger.debug(f"Encoded {name} ({mime}, {len(data)} bytes)")
    return f"data:{mime};base64,{b64}"
