"""
Anthropic Provider

Queries Claude models through the Anthropic SDK.
"""

import logging
from typing import Optional

import anthropic

from .base import ProviderClient, ProviderReply, SYSTEM_PROMPT
from ..errors import ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)


class ClaudeClient(ProviderClient):
    """
    Async client for the Anthropic Messages API.

    SDK retries are disabled: a failed call is reported once and
    recorded by the fan-out as a failed response.
    """

    provider_id = "anthropic"
    display_name = "Anthropic"

    DEFAULT_MODEL = "claude-3-5-haiku-latest"
    MAX_TOKENS = 1024
    TEMPERATURE = 0.3

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key
            model: Model to use
            client: Pre-built SDK client (optional)
        """
        super().__init__(model or self.DEFAULT_MODEL)
        self.async_client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            max_retries=0,
        )

    async def query(self, prompt_text: str, timeout: float) -> ProviderReply:
        try:
            response = await self.async_client.messages.create(
                model=self.model,
                max_tokens=self.MAX_TOKENS,
                temperature=self.TEMPERATURE,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt_text}],
                timeout=timeout,
            )
        except anthropic.APITimeoutError as e:
            raise ProviderTimeout(
                f"Request timed out: {e}", provider_id=self.provider_id
            ) from e
        except anthropic.APIStatusError as e:
            raise ProviderError(
                f"API error: {e.message}",
                provider_id=self.provider_id,
                status_code=e.status_code,
            ) from e
        except anthropic.APIError as e:
            raise ProviderError(
                f"Request failed: {e}", provider_id=self.provider_id
            ) from e

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        return ProviderReply(
            text=content,
            model=response.model,
            tokens_used=response.usage.input_tokens + response.usage.output_tokens,
        )

    async def close(self):
        await self.async_client.close()
