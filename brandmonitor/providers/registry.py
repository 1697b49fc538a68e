"""
Provider Registry

Reports which AI backends are usable and hands out their clients.
A provider is enabled when its API key is configured.
"""

import logging
from typing import Dict, List, Optional

from .base import ProviderClient, ProviderReply
from .claude import ClaudeClient
from .gemini import GeminiClient
from .openai import OpenAIClient
from .perplexity import PerplexityClient
from ..errors import ProviderError
from ..models import ProviderIdentity

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry of configured AI provider clients.

    Usage:
        registry = ProviderRegistry.from_settings(get_settings())
        for identity in registry.list_enabled():
            reply = await registry.query(identity.id, "Best CRM tools?", timeout=30)
        await registry.close()
    """

    def __init__(self, clients: Optional[List[ProviderClient]] = None):
        self._clients: Dict[str, ProviderClient] = {}
        for client in clients or []:
            self.register(client)

    @classmethod
    def from_settings(cls, settings) -> "ProviderRegistry":
        """Build clients for every provider whose API key is set."""
        clients: List[ProviderClient] = []
        timeout = settings.PROVIDER_TIMEOUT_SECONDS

        if settings.OPENAI_API_KEY:
            clients.append(OpenAIClient(
                api_key=settings.OPENAI_API_KEY,
                model=settings.OPENAI_MODEL,
                timeout=timeout,
            ))
        if settings.ANTHROPIC_API_KEY:
            clients.append(ClaudeClient(
                api_key=settings.ANTHROPIC_API_KEY,
                model=settings.ANTHROPIC_MODEL,
            ))
        if settings.GOOGLE_GENERATIVE_AI_API_KEY:
            clients.append(GeminiClient(
                api_key=settings.GOOGLE_GENERATIVE_AI_API_KEY,
                model=settings.GOOGLE_MODEL,
                timeout=timeout,
            ))
        if settings.PERPLEXITY_API_KEY:
            clients.append(PerplexityClient(
                api_key=settings.PERPLEXITY_API_KEY,
                default_model=settings.PERPLEXITY_MODEL,
                timeout=timeout,
            ))

        registry = cls(clients)
        registry.log_status()
        return registry

    def register(self, client: ProviderClient):
        """Add a provider client, replacing any client with the same id."""
        self._clients[client.provider_id] = client

    def list_enabled(self) -> List[ProviderIdentity]:
        """Identities of all usable providers, in registration order."""
        return [client.identity for client in self._clients.values()]

    def get_client(self, provider_id: str) -> ProviderClient:
        try:
            return self._clients[provider_id]
        except KeyError:
            raise ProviderError(
                f"Unknown provider: {provider_id}", provider_id=provider_id
            ) from None

    async def query(self, provider_id: str, prompt_text: str, timeout: float) -> ProviderReply:
        """Send one prompt to one provider."""
        return await self.get_client(provider_id).query(prompt_text, timeout)

    def log_status(self):
        """Log configuration status."""
        names = [client.display_name for client in self._clients.values()]
        logger.info(f"AI providers enabled: {', '.join(names) if names else 'none'}")

    async def close(self):
        """Close all clients."""
        for client in self._clients.values():
            await client.close()
        logger.info("Closed AI provider clients")
