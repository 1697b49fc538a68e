"""
OpenAI Provider

Chat Completions client used to ask ChatGPT models the evaluation prompts.

API: https://platform.openai.com/docs/api-reference/chat
"""

import logging
from typing import Optional

import httpx

from .base import HTTPProviderClient, ProviderReply, SYSTEM_PROMPT
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class OpenAIClient(HTTPProviderClient):
    """
    Async client for the OpenAI Chat Completions API.

    Usage:
        client = OpenAIClient(api_key="sk-...")
        reply = await client.query("What are the best CRM tools?", timeout=30)
        await client.close()
    """

    provider_id = "openai"
    display_name = "OpenAI"
    BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model, timeout=timeout, transport=transport)
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def query(self, prompt_text: str, timeout: float) -> ProviderReply:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt_text},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        response = await self._post("/chat/completions", payload, timeout=timeout)

        choices = response.get("choices", [])
        if not choices:
            raise ProviderError("Response contained no choices", provider_id=self.provider_id)

        text = choices[0].get("message", {}).get("content") or ""
        usage = response.get("usage", {})

        return ProviderReply(
            text=text,
            model=response.get("model", self.model),
            tokens_used=usage.get("total_tokens", 0),
        )
