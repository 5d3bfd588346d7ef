"""Pydantic models for structured data extraction."""

from .profile import Confidence, ExtractionRecord

__all__ = [
    "Confidence",
    "ExtractionRecord",
]
