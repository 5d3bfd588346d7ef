"""
Pydantic models for profile screenshot extraction.

ExtractionRecord mirrors the JSON object the vision model is asked to
return. Coercion is deliberately conservative: values the model did not
clearly provide become None or are dropped, never invented.
"""

from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


class Confidence(str, Enum):
    """Model's own certainty label for an extraction."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# =============================================================================
# FLEXIBLE TYPE COERCION
# =============================================================================

def coerce_handle(v: Any) -> Optional[str]:
    """
    Normalize a handle as returned by the VLM.

    Handles:
    - None, empty string, "null", "N/A" → None
    - Leading "@" symbols and surrounding whitespace are removed
    """
    if v is None:
        return None

    v_str = str(v).strip().lstrip("@").strip()
    if not v_str or v_str.lower() in ("none", "null", "n/a", "unknown"):
        return None

    return v_str


def coerce_emails(v: Any) -> list[str]:
    """
    Coerce the emails field into an ordered list of strings.

    A single string becomes a one-element list; blank entries are dropped.
    Order and duplicates are preserved.
    """
    if v is None:
        return []

    if isinstance(v, str):
        v = [v]

    if not isinstance(v, (list, tuple)):
        raise ValueError(f"emails must be a list of strings, got {type(v).__name__}")

    emails = []
    for item in v:
        if item is None:
            continue
        if not isinstance(item, str):
            raise ValueError(f"email entries must be strings, got {type(item).__name__}")
        item = item.strip()
        if item:
            emails.append(item)
    return emails


def coerce_confidence(v: Any) -> Optional[Confidence]:
    """Match a confidence label case-insensitively; unknown labels become None."""
    if v is None or isinstance(v, Confidence):
        return v

    label = str(v).strip().lower()
    for level in Confidence:
        if level.value.lower() == label:
            return level
    return None


FlexibleHandle = Annotated[Optional[str], BeforeValidator(coerce_handle)]
EmailList = Annotated[list[str], BeforeValidator(coerce_emails)]
FlexibleConfidence = Annotated[Optional[Confidence], BeforeValidator(coerce_confidence)]


# =============================================================================
# MODELS
# =============================================================================

class ExtractionRecord(BaseModel):
    """
    Structured data recovered from one profile screenshot.

    All fields are optional: a screenshot with no visible email still
    yields a valid record with an empty ``emails`` list.
    """

    model_config = ConfigDict(frozen=True)

    username: FlexibleHandle = Field(
        default=None,
        description="Primary account handle, without the leading @",
        examples=["jane_doe", None],
    )
    emails: EmailList = Field(
        default_factory=list,
        description="Contact emails in the order they were found",
        examples=[["jane@example.com"], []],
    )
    confidence: FlexibleConfidence = Field(
        default=None,
        description="Extraction certainty reported by the model",
        examples=["High", "Low"],
    )
