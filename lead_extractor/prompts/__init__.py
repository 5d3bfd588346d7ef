"""
Prompt management for VLM extractors.

Prompts live next to this module as YAML files, one per document type.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# Prompts directory
PROMPTS_DIR = Path(__file__).parent


class PromptConfig:
    """Instruction template for a document type."""

    def __init__(self, data: dict[str, Any]):
        self._data = data

    @property
    def document_type(self) -> str:
        return self._data.get("document_type", "")

    @property
    def version(self) -> str:
        """Template version, logged alongside each run."""
        return str(self._data.get("version", ""))

    @property
    def system_prompt(self) -> str:
        return self._data.get("system_prompt", "")

    @property
    def user_prompt(self) -> str:
        return self._data.get("user_prompt", "")


@lru_cache(maxsize=8)
def load_prompts(source_name: str) -> PromptConfig:
    """
    Load prompts for a given source from YAML file.

    Args:
        source_name: Name of the source (e.g., 'profile')

    Returns:
        PromptConfig with loaded prompts

    Raises:
        FileNotFoundError: If prompt file doesn't exist
        ValueError: If the file lacks a system or user prompt
    """
    yaml_path = PROMPTS_DIR / f"{source_name.lower()}.yaml"

    if not yaml_path.exists():
        raise FileNotFoundError(
            f"Prompts file not found: {yaml_path}. "
            f"Available prompts: {list_available_prompts()}"
        )

    logger.debug(f"Loading prompts from {yaml_path}")

    with open(yaml_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = PromptConfig(data)
    if not config.system_prompt or not config.user_prompt:
        raise ValueError(f"Prompt file {yaml_path} needs system_prompt and user_prompt")

    return config


def list_available_prompts() -> list[str]:
    """Get list of available prompt files (document types)."""
    return [
        f.stem
        for f in PROMPTS_DIR.glob("*.yaml")
        if not f.name.startswith("_")
    ]


def clear_prompt_cache() -> None:
    """Clear the prompt loading cache (useful for testing)."""
    load_prompts.cache_clear()


__all__ = [
    "PromptConfig",
    "load_prompts",
    "list_available_prompts",
    "clear_prompt_cache",
    "PROMPTS_DIR",
]
