"""
External API Integrations

Collaborators used by the analysis pipeline:
- Firecrawl: Website scraping for company context
- Web search: Perplexity-backed competitor discovery
"""

from .firecrawl import CompanyScraper, FirecrawlClient, FirecrawlError
from .web_search import WebSearch, create_web_search

__all__ = [
    # Firecrawl
    "FirecrawlClient",
    "FirecrawlError",
    "CompanyScraper",
    # Web search
    "WebSearch",
    "create_web_search",
]
