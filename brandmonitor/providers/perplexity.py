"""
Perplexity Provider

Perplexity answers with live web search, which makes it both an
AI provider for visibility prompts and the engine behind competitor
discovery (see integrations.web_search).

API: https://docs.perplexity.ai/
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .base import HTTPProviderClient, ProviderReply, SYSTEM_PROMPT
from ..errors import ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)


class PerplexityError(ProviderError):
    """Custom exception for Perplexity API errors."""


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


@dataclass
class DiscoveredCompetitor:
    """Competitor discovered from Perplexity response."""

    name: str
    domain: Optional[str] = None
    discovery_source: str = "perplexity"
    confidence: float = 0.7
    raw_mention: str = ""


@dataclass
class PerplexityResult:
    """Result from a Perplexity query."""

    answer: str
    citations: List[str] = field(default_factory=list)
    competitors: List[DiscoveredCompetitor] = field(default_factory=list)
    query: str = ""
    model: str = ""
    tokens_used: int = 0


class PerplexityClient(HTTPProviderClient):
    """
    Async client for Perplexity API.

    Usage:
        client = PerplexityClient(api_key="your_api_key")

        reply = await client.query("Best project management tools?", timeout=30)
        result = await client.ask("Who are the main competitors to Notion?")

        await client.close()

    query() is the single-shot provider call used during analysis runs;
    ask() retries transient failures and is used for competitor discovery.
    """

    provider_id = "perplexity"
    display_name = "Perplexity"
    BASE_URL = "https://api.perplexity.ai"

    MODELS = {
        "sonar": "sonar",
        "sonar-pro": "sonar-pro",
        "sonar-reasoning": "sonar-reasoning",
    }

    def __init__(
        self,
        api_key: str,
        default_model: str = "sonar",
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Perplexity client.

        Args:
            api_key: Perplexity API key
            default_model: Default model to use (sonar, sonar-pro, sonar-reasoning)
            retry_config: Retry configuration for ask() (optional)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(
            api_key,
            self.MODELS.get(default_model, default_model),
            timeout=timeout,
            transport=transport,
        )
        self.retry_config = retry_config or RetryConfig()

    def _payload(
        self,
        question: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
        search_recency_filter: Optional[str] = None,
    ) -> Dict[str, Any]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": question})

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if search_recency_filter:
            payload["search_recency_filter"] = search_recency_filter
        return payload

    async def query(self, prompt_text: str, timeout: float) -> ProviderReply:
        payload = self._payload(prompt_text, SYSTEM_PROMPT, temperature=0.2, max_tokens=1024)
        response = await self._post("/chat/completions", payload, timeout=timeout)

        answer = _answer_text(response)
        return ProviderReply(
            text=answer,
            model=response.get("model", self.model),
            tokens_used=response.get("usage", {}).get("total_tokens", 0),
        )

    async def ask(
        self,
        question: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        search_recency_filter: Optional[str] = None,
    ) -> PerplexityResult:
        """
        Ask Perplexity a question, retrying transient failures.

        Args:
            question: The question to ask
            system_prompt: Optional system prompt for context
            temperature: Response temperature (0-1)
            max_tokens: Maximum tokens in response
            search_recency_filter: Filter by recency (day, week, month, year)

        Returns:
            PerplexityResult with answer and citations
        """
        payload = self._payload(
            question, system_prompt, temperature, max_tokens, search_recency_filter
        )
        response = await self._request_with_retry(payload)

        return PerplexityResult(
            answer=_answer_text(response),
            citations=response.get("citations", []),
            query=question,
            model=self.model,
            tokens_used=response.get("usage", {}).get("total_tokens", 0),
        )

    async def ask_for_competitors(
        self,
        question: str,
        system_prompt: Optional[str] = None,
        **kwargs,
    ) -> PerplexityResult:
        """
        Ask Perplexity about competitors and extract them from the answer.

        Args:
            question: Question about competitors
            system_prompt: Optional system prompt
            **kwargs: Additional arguments passed to ask()

        Returns:
            PerplexityResult with extracted competitors
        """
        if not system_prompt:
            system_prompt = (
                "You are a business intelligence analyst helping identify competitors. "
                "When listing competitors, always include their company name and website domain "
                "in parentheses if known. Be specific and factual. Focus on direct competitors "
                "in the same market segment."
            )

        result = await self.ask(question, system_prompt=system_prompt, **kwargs)
        result.competitors = extract_competitors(result.answer)
        return result

    async def _request_with_retry(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make request with retry logic."""
        config = self.retry_config
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                return await self._post("/chat/completions", payload)
            except ProviderTimeout as e:
                last_exception = PerplexityError(str(e), provider_id=self.provider_id)
            except ProviderError as e:
                if e.status_code is not None and e.status_code not in config.retryable_status_codes:
                    raise PerplexityError(
                        str(e),
                        provider_id=self.provider_id,
                        status_code=e.status_code,
                        response=e.response,
                    ) from e
                last_exception = PerplexityError(
                    str(e), provider_id=self.provider_id, status_code=e.status_code
                )

            if attempt < config.max_retries:
                delay = min(
                    config.initial_delay * (config.exponential_base**attempt),
                    config.max_delay,
                )
                logger.warning(
                    f"Perplexity request failed, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries + 1})"
                )
                await asyncio.sleep(delay)

        raise last_exception


def _answer_text(response: Dict[str, Any]) -> str:
    choices = response.get("choices", [])
    if not choices:
        return ""
    return choices[0].get("message", {}).get("content") or ""


def extract_competitors(text: str) -> List[DiscoveredCompetitor]:
    """
    Extract competitor names and domains from Perplexity response text.

    Uses multiple patterns to find company mentions:
    - Company Name (domain.com)
    - Bold/emphasized company names
    - Numbered lists with company names
    """
    competitors = []
    seen_names = set()

    # Pattern 1: Company (domain.com) or Company [domain.com]
    pattern1 = r"([A-Z][a-zA-Z0-9 &\-\.]+?)\s*[\(\[]([a-zA-Z0-9\-]+\.[a-zA-Z]{2,})[^\)\]]*[\)\]]"
    for match in re.finditer(pattern1, text):
        name = _clean_name(match.group(1))
        domain = match.group(2).lower()
        if name.lower() not in seen_names and len(name) > 1:
            seen_names.add(name.lower())
            competitors.append(
                DiscoveredCompetitor(
                    name=name,
                    domain=domain,
                    raw_mention=match.group(0),
                    confidence=0.9,
                )
            )

    # Pattern 2: **Company Name** (bold markdown)
    pattern2 = r"\*\*([A-Z][a-zA-Z0-9 &\-\.]+?)\*\*"
    for match in re.finditer(pattern2, text):
        name = _clean_name(match.group(1))
        if name.lower() not in seen_names and len(name) > 1:
            domain = _find_nearby_domain(text, match.start(), match.end())
            seen_names.add(name.lower())
            competitors.append(
                DiscoveredCompetitor(
                    name=name,
                    domain=domain,
                    raw_mention=match.group(0),
                    confidence=0.7 if domain else 0.5,
                )
            )

    # Pattern 3: Numbered list items "1. Company Name" or "- Company Name"
    pattern3 = r"(?:^|\n)\s*(?:\d+[\.\)]|[\-\*])\s+([A-Z][a-zA-Z0-9 &\-\.]+?)(?:\s*[\-\:\(]|\s*$|\n)"
    for match in re.finditer(pattern3, text):
        name = _clean_name(match.group(1))
        name = re.sub(r"\s+(is|are|has|offers|provides)\b.*$", "", name, flags=re.IGNORECASE)
        if name.lower() not in seen_names and 1 < len(name) < 50:
            domain = _find_nearby_domain(text, match.start(), match.end())
            seen_names.add(name.lower())
            competitors.append(
                DiscoveredCompetitor(
                    name=name,
                    domain=domain,
                    raw_mention=match.group(0).strip(),
                    confidence=0.6 if domain else 0.4,
                )
            )

    # Stable sort keeps answer order within the same confidence
    competitors.sort(key=lambda c: c.confidence, reverse=True)
    return competitors


def _clean_name(name: str) -> str:
    return name.strip().strip("*").strip(" .-")


def _find_nearby_domain(
    text: str,
    start: int,
    end: int,
    search_range: int = 100,
) -> Optional[str]:
    """Find a domain mention near a position in text."""
    search_text = text[max(0, start - 20) : min(len(text), end + search_range)]
    domain_pattern = r"([a-zA-Z0-9\-]+\.(?:com|io|co|org|net|ai|app|dev))"
    match = re.search(domain_pattern, search_text)
    return match.group(1).lower() if match else None
