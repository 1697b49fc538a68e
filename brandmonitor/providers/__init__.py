"""
AI Provider Clients

Clients for the AI backends whose answers are analyzed:
- OpenAI (Chat Completions)
- Anthropic (Messages API via the anthropic SDK)
- Google (Gemini generateContent)
- Perplexity (also used for competitor discovery)
"""

from .base import HTTPProviderClient, ProviderClient, ProviderReply
from .claude import ClaudeClient
from .gemini import GeminiClient
from .openai import OpenAIClient
from .perplexity import (
    DiscoveredCompetitor,
    PerplexityClient,
    PerplexityError,
    PerplexityResult,
    extract_competitors,
)
from .registry import ProviderRegistry

__all__ = [
    # Base
    "ProviderClient",
    "HTTPProviderClient",
    "ProviderReply",
    # Clients
    "OpenAIClient",
    "ClaudeClient",
    "GeminiClient",
    "PerplexityClient",
    "PerplexityError",
    "PerplexityResult",
    "DiscoveredCompetitor",
    "extract_competitors",
    # Registry
    "ProviderRegistry",
]
