"""API clients for the vision extraction service."""

from .json_parsing import (
    extract_json_from_response,
    parse_json_object,
    strip_markdown,
)
from .vision import ExtractionError, TransportError, VisionClient, VisionError

__all__ = [
    # Vision client
    "VisionClient",
    "VisionError",
    "TransportError",
    "ExtractionError",
    # JSON parsing utilities
    "strip_markdown",
    "extract_json_from_response",
    "parse_json_object",
]
