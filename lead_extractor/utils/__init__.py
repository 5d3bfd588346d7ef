"""Utility modules for configuration and image encoding."""

from .config import get_api_key, get_settings, settings
from .encoding import EncodingError, detect_mime_type, encode_image, read_payload

__all__ = [
    # Config
    "get_api_key",
    "get_settings",
    "settings",
    # Image encoding
    "EncodingError",
    "detect_mime_type",
    "encode_image",
    "read_payload",
]
