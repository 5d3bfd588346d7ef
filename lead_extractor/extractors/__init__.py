"""VLM-based extractors."""

from .base import BaseExtractor
from .profile_extractor import ProfileExtractor

__all__ = [
    "BaseExtractor",
    "ProfileExtractor",
]
