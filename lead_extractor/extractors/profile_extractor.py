"""
Profile screenshot extractor.

Uses Vision LLM to recover the account handle, contact emails and a
confidence label from a social profile screenshot.
"""

from ..models.profile import ExtractionRecord
from ..prompts import PromptConfig, load_prompts
from .base import BaseExtractor


class ProfileExtractor(BaseExtractor[ExtractionRecord]):
    """
    Extractor for profile screenshots.

    The instruction template is loaded from ``prompts/profile.yaml`` and is
    the only prompt contract with the model.
    """

    @property
    def source_name(self) -> str:
        return "profile"

    @property
    def model_class(self) -> type[ExtractionRecord]:
        return ExtractionRecord

    @property
    def _prompt_config(self) -> PromptConfig:
        """Get prompt configuration from YAML file."""
        return load_prompts(self.source_name)

    @property
    def prompt_version(self) -> str:
        return self._prompt_config.version

    @property
    def system_prompt(self) -> str:
        return self._prompt_config.system_prompt

    @property
    def user_prompt(self) -> str:
        return self._prompt_config.user_prompt
