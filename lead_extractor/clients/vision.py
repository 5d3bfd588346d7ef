"""
Vision LLM client for OpenAI-compatible chat completions APIs.

Sends one screenshot plus a fixed instruction template and returns the
model's JSON object. Each call makes exactly one HTTP request: no retries,
no fallback models, no caching. Retry policy, if any, belongs to the
caller.
"""

import logging
from typing import Any, Optional

import httpx

from ..utils.config import settings
from .json_parsing import parse_json_object

logger = logging.getLogger(__name__)


class VisionError(Exception):
    """Base exception for vision extraction errors."""

    pass


class TransportError(VisionError):
    """Raised when the service is unreachable, times out or answers non-2xx."""

    pass


class ExtractionError(VisionError):
    """Raised when the service answered but no usable JSON object came back."""

    pass


class VisionClient:
    """
    Async client for a vision-capable chat completions endpoint.

    Features:
    - Image input as a base64 data URI
    - JSON object response format enforcement
    - Typed failures (TransportError / ExtractionError)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the vision client.

        Args:
            api_key: API key (defaults to settings)
            model: Model identifier (defaults to settings.vlm_model)
            base_url: API base URL (defaults to settings.vlm_base_url)
            timeout: Request timeout in seconds (defaults to settings.vlm_timeout)
            transport: Optional httpx transport, used to stub the network
        """
        from ..utils.config import get_api_key

        self.api_key = api_key or get_api_key()
        self.model = model or settings.vlm_model
        self.base_url = (base_url or settings.vlm_base_url).rstrip("/")
        self.timeout = timeout or settings.vlm_timeout
        self._transport = transport

        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _build_messages(
        self,
        system_prompt: str,
        user_prompt: str,
        image_url: str,
    ) -> list[dict]:
        """Build the messages payload for the API request."""
        return [
            {"role": "system", "content": system_prompt},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": user_prompt},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ]

    async def _make_request(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Make a single API request, mapping network failures to TransportError."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.endpoint,
                    headers=self.headers,
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Vision API returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Vision API request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ExtractionError(f"Vision API returned a non-JSON body: {e}") from e

    async def extract_with_vision(
        self,
        image_url: str,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Send one image to the VLM and return its JSON object.

        Args:
            image_url: Image as a data URI (see utils.encoding.encode_image)
            system_prompt: System instructions
            user_prompt: User prompt describing the extraction task
            temperature: Model temperature (defaults to settings)
            max_tokens: Maximum tokens for response (defaults to settings)

        Returns:
            Parsed JSON object from the model

        Raises:
            TransportError: If the request could not be completed
            ExtractionError: If the response holds no single JSON object
        """
        temperature = temperature if temperature is not None else settings.vlm_temperature
        max_tokens = max_tokens or settings.vlm_max_tokens

        payload = {
            "model": self.model,
            "messages": self._build_messages(system_prompt, user_prompt, image_url),
            "response_format": {"type": "json_object"},
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        logger.info(f"VLM request (model={self.model}, max_tokens={max_tokens})")
        result = await self._make_request(payload)

        choices = result.get("choices") if isinstance(result, dict) else None
        if not choices or not isinstance(choices[0], dict):
            raise ExtractionError(f"No choices in response: {result}")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content.strip():
            raise ExtractionError("Empty content in response")

        try:
            parsed = parse_json_object(content)
        except ValueError as e:
            raise ExtractionError(str(e)) from e

        logger.info("VLM extraction successful")
        return parsed
