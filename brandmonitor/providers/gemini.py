"""
Google Gemini Provider

generateContent client for Gemini models.

API: https://ai.google.dev/api/generate-content
"""

import logging
from typing import Dict, Optional

import httpx

from .base import HTTPProviderClient, ProviderReply, SYSTEM_PROMPT
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class GeminiClient(HTTPProviderClient):
    """Async client for the Gemini generateContent API."""

    provider_id = "google"
    display_name = "Google"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        timeout: float = 60.0,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model, timeout=timeout, transport=transport)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _headers(self) -> Dict[str, str]:
        # Gemini authenticates with a header key instead of a bearer token
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    async def query(self, prompt_text: str, timeout: float) -> ProviderReply:
        payload = {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt_text}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

        response = await self._post(
            f"/models/{self.model}:generateContent", payload, timeout=timeout
        )

        candidates = response.get("candidates", [])
        if not candidates:
            reason = response.get("promptFeedback", {}).get("blockReason", "no candidates")
            raise ProviderError(f"Response contained {reason}", provider_id=self.provider_id)

        parts = candidates[0].get("content", {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts)
        usage = response.get("usageMetadata", {})

        return ProviderReply(
            text=text,
            model=self.model,
            tokens_used=usage.get("totalTokenCount", 0),
        )
