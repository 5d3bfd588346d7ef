"""
Base extractor interface for VLM-based screenshot extraction.

Defines the abstract interface that all source-specific extractors must
implement: a fixed instruction template plus a Pydantic model that the
VLM's JSON object is validated against.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from ..clients.vision import ExtractionError, VisionClient

T = TypeVar("T", bound=BaseModel)


class BaseExtractor(ABC, Generic[T]):
    """
    Abstract base class for VLM-based extractors.

    Subclasses must implement:
    - system_prompt: The system instructions for the VLM
    - user_prompt: The user prompt describing what to extract
    - model_class: The Pydantic model for validation
    - source_name: Identifier for this extraction source
    """

    def __init__(self, client: VisionClient | None = None):
        """
        Initialize the extractor.

        Args:
            client: Optional pre-configured vision client. Created lazily
                from settings when omitted.
        """
        self._client = client

    @property
    def client(self) -> VisionClient:
        """Get the vision client, creating it from settings on first use."""
        if self._client is None:
            self._client = VisionClient()
        return self._client

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        """System prompt for the VLM."""
        pass

    @property
    @abstractmethod
    def user_prompt(self) -> str:
        """User prompt describing the extraction task."""
        pass

    @property
    @abstractmethod
    def model_class(self) -> type[T]:
        """Pydantic model class for validation."""
        pass

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Source identifier (e.g., 'profile')."""
        pass

    async def extract(self, image_url: str) -> T:
        """
        Extract structured data from one encoded image.

        Makes exactly one request to the vision service.

        Args:
            image_url: Image encoded as a data URI

        Returns:
            Validated Pydantic model instance with extracted data

        Raises:
            TransportError: If the service could not be reached
            ExtractionError: If the response is missing or fails validation
        """
        raw = await self.client.extract_with_vision(
            image_url=image_url,
            system_prompt=self.system_prompt,
            user_prompt=self.user_prompt,
        )

        try:
            return self.model_class.model_validate(raw)
        except ValidationError as e:
            raise ExtractionError(
                f"{self.source_name} response failed validation: "
                f"{e.error_count()} error(s)"
            ) from e
