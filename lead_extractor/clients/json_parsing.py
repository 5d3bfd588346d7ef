"""
JSON parsing utilities for VLM output.

Models asked for ``json_object`` output usually comply, but some
OpenAI-compatible gateways still wrap the object in markdown fences or
prepend a sentence. These helpers isolate the object without guessing at
missing content: a truncated or malformed object is an error, not
something to patch up.
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def strip_markdown(content: str) -> str:
    """
    Remove markdown code block formatting from content.

    Args:
        content: Raw content possibly wrapped in markdown

    Returns:
        Content with markdown formatting removed
    """
    content = content.strip()

    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]

    return content.strip()


def extract_json_from_response(content: str) -> str:
    """
    Extract the JSON object from a VLM response, dropping surrounding text.

    Args:
        content: Raw response content

    Returns:
        The substring between the first ``{`` and the last ``}``, or the
        stripped content if no braces are present
    """
    content = strip_markdown(content)

    start = content.find("{")
    end = content.rfind("}")
    if start > 0 or (start >= 0 and end < len(content) - 1):
        logger.debug(f"JSON extract: trimmed response to [{start}:{end + 1}]")
        content = content[start:end + 1]

    return content


def parse_json_object(content: str) -> dict[str, Any]:
    """
    Parse a response into a single JSON object.

    Args:
        content: Raw response content

    Returns:
        Parsed object

    Raises:
        ValueError: If the content is not exactly one JSON object
    """
    cleaned = extract_json_from_response(content)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"Response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError(
            f"Expected a JSON object, got {type(parsed).__name__}"
        )

    return parsed
