"""
Firecrawl API Client

Website scraping service for company context acquisition.

Firecrawl handles:
- JavaScript rendering
- Anti-bot bypass
- Clean markdown output and schema-guided JSON extraction
- Cached results (maxAge) so repeated analyses don't re-scrape

API: https://firecrawl.dev
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ScrapeError
from ..models import CompanyInfo, utcnow
from ..utils.domain import normalize_domain, normalize_url

logger = logging.getLogger(__name__)


class FirecrawlError(ScrapeError):
    """Custom exception for Firecrawl API errors."""


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


class FirecrawlClient:
    """
    Async client for Firecrawl API.

    Usage:
        client = FirecrawlClient(api_key="your_api_key")

        result = await client.scrape_url("https://example.com")
        # result = {"success": True, "data": {"markdown": "...", "metadata": {...}}}

        await client.close()
    """

    BASE_URL = "https://api.firecrawl.dev/v1"

    def __init__(
        self,
        api_key: str,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Firecrawl client.

        Args:
            api_key: Firecrawl API key
            retry_config: Retry configuration (optional)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.retry_config = retry_config or RetryConfig()

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    async def scrape_url(
        self,
        url: str,
        formats: List[str] = None,
        json_options: Optional[Dict[str, Any]] = None,
        only_main_content: bool = True,
        max_age_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Scrape a single URL.

        Args:
            url: URL to scrape
            formats: Output formats (markdown, html, json, links)
            json_options: Schema/prompt for the "json" format
            only_main_content: Extract only main content (no nav/footer)
            max_age_ms: Accept a cached scrape younger than this

        Returns:
            {
                "success": bool,
                "data": {
                    "markdown": "...",
                    "json": {...},
                    "metadata": {"title": "...", "description": "...", ...}
                }
            }
        """
        if self._closed:
            raise FirecrawlError("Client has been closed")

        payload: Dict[str, Any] = {
            "url": url,
            "formats": formats or ["markdown"],
            "onlyMainContent": only_main_content,
        }

        if json_options:
            payload["jsonOptions"] = json_options
        if max_age_ms is not None:
            payload["maxAge"] = max_age_ms

        return await self._request_with_retry("POST", "/scrape", payload)

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Make request with retry logic."""
        config = self.retry_config
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                if method == "POST":
                    response = await self._client.post(endpoint, json=payload)
                elif method == "GET":
                    response = await self._client.get(endpoint)
                else:
                    raise ValueError(f"Unsupported method: {method}")

                # Check for errors
                if response.status_code >= 400:
                    error_data = response.json() if response.content else {}

                    if response.status_code in config.retryable_status_codes:
                        last_exception = FirecrawlError(
                            f"API error: {response.status_code}",
                            status_code=response.status_code,
                            response=error_data,
                        )
                        # Will retry
                    else:
                        raise FirecrawlError(
                            f"API error: {error_data.get('error', response.status_code)}",
                            status_code=response.status_code,
                            response=error_data,
                        )
                else:
                    return response.json()

            except httpx.TimeoutException as e:
                last_exception = FirecrawlError(f"Request timed out: {e}")
            except httpx.RequestError as e:
                last_exception = FirecrawlError(f"Request failed: {e}")

            # Retry delay
            if attempt < config.max_retries:
                delay = min(
                    config.initial_delay * (config.exponential_base**attempt),
                    config.max_delay,
                )
                logger.warning(
                    f"Firecrawl request failed, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries + 1})"
                )
                await asyncio.sleep(delay)

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# =============================================================================
# COMPANY SCRAPER
# =============================================================================


COMPANY_SCHEMA = {
    "type": "object",
    "properties": {
        "company_name": {"type": "string"},
        "description": {"type": "string"},
        "industry": {"type": "string"},
        "markets": {"type": "array", "items": {"type": "string"}},
        "keywords": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["company_name", "description"],
}

COMPANY_PROMPT = (
    "Extract the company name, a one-sentence description of what it offers, "
    "its industry or product category (a short noun phrase such as "
    "'project management software'), the markets or customer segments it "
    "serves, and up to five keywords describing its main products."
)


class CompanyScraper:
    """
    Scraper collaborator: turns a company URL into normalized CompanyInfo.

    Uses Firecrawl's JSON extraction for structured fields, falling back to
    page metadata when extraction returns nothing.
    """

    def __init__(self, client: FirecrawlClient):
        """
        Initialize company scraper.

        Args:
            client: FirecrawlClient instance
        """
        self.client = client

    async def fetch(self, url: str, max_age_seconds: Optional[int] = None) -> CompanyInfo:
        """
        Scrape a company's homepage.

        Args:
            url: Company URL (scheme optional)
            max_age_seconds: Accept a cached scrape younger than this

        Returns:
            CompanyInfo

        Raises:
            ScrapeError: The page could not be scraped
        """
        normalized_url = normalize_url(url)
        if not normalized_url:
            raise ScrapeError("URL is required")

        logger.info(f"Scraping company info from {normalized_url}")

        result = await self.client.scrape_url(
            normalized_url,
            formats=["markdown", "json"],
            json_options={"schema": COMPANY_SCHEMA, "prompt": COMPANY_PROMPT},
            max_age_ms=max_age_seconds * 1000 if max_age_seconds is not None else None,
        )

        if not result.get("success"):
            raise ScrapeError(
                f"Failed to scrape {normalized_url}: {result.get('error', 'unknown error')}",
                response=result,
            )

        return self._build_company_info(normalized_url, result.get("data", {}))

    def _build_company_info(self, url: str, data: Dict[str, Any]) -> CompanyInfo:
        extracted = data.get("json") or {}
        metadata = data.get("metadata") or {}

        name = (
            extracted.get("company_name")
            or metadata.get("ogSiteName")
            or _title_name(metadata.get("title", ""))
            or normalize_domain(url).split(".")[0].title()
        )
        description = extracted.get("description") or metadata.get("description") or ""

        return CompanyInfo(
            name=name.strip(),
            url=url,
            description=description.strip(),
            industry=(extracted.get("industry") or "").strip(),
            markets=[m for m in extracted.get("markets") or [] if m],
            keywords=[k for k in extracted.get("keywords") or [] if k],
            scraped_at=utcnow(),
        )


def _title_name(title: str) -> str:
    """Company name from a page title like "Acme | Project software"."""
    for separator in ("|", " - ", " – ", ":"):
        if separator in title:
            title = title.split(separator)[0]
    return title.strip()
