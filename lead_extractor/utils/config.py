"""
Configuration management for the profile lead extractor.

Handles environment variables and application settings using Pydantic.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory (parent of lead_extractor/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # API Keys
    openai_api_key: Optional[str] = Field(
        default=None,
        alias="OPENAI_API_KEY",
        description="API key for the vision extraction endpoint",
    )

    # VLM Configuration
    vlm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    vlm_model: str = Field(
        default="gpt-4o-mini",
        description="Vision model used for profile extraction",
    )
    vlm_temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Temperature for VLM responses (lower = more deterministic)",
    )
    vlm_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Timeout in seconds for a single VLM call",
    )
    vlm_max_tokens: int = Field(
        default=300,
        ge=1,
        description="Maximum tokens for the VLM response",
    )

    # Image ingestion
    max_image_bytes: int = Field(
        default=20 * 1024 * 1024,
        ge=1,
        description="Largest screenshot accepted for encoding",
    )


def get_settings() -> Settings:
    """Get application settings (fresh instance each time for dev)."""
    return Settings()


# Convenience alias - creates fresh instance
settings = get_settings()


def get_api_key() -> str:
    """
    Retrieve the vision API key from environment.

    Returns:
        str: The API key

    Raises:
        ValueError: If API key is not configured
    """
    key = settings.openai_api_key
    if not key:
        raise ValueError(
            "OPENAI_API_KEY not configured. "
            "Add it to your .env file or set it as an environment variable."
        )
    return key
