"""
Web Search Competitor Discovery

Finds a company's competitors with Perplexity's live web search.

Executes targeted queries and merges the answers:
1. Direct competitors by company name
2. Alternative products/services
3. Market leaders in the category
"""

import asyncio
import logging
from typing import List, Optional

from ..models import CompanyInfo
from ..providers.perplexity import DiscoveredCompetitor, PerplexityClient, PerplexityError
from ..utils.domain import is_excluded_platform, normalize_domain, normalize_name

logger = logging.getLogger(__name__)


class WebSearch:
    """
    Competitor discovery using Perplexity AI search.

    Usage:
        search = WebSearch(PerplexityClient(api_key="..."))
        names = await search.discover_competitors(company_info)
    """

    # Query templates for competitor discovery
    QUERY_TEMPLATES = {
        "direct": (
            "Who are the main direct competitors to {company_name} ({domain}) "
            "in the {category} market? List specific company names and their websites."
        ),
        "alternatives": (
            "What are the best alternatives to {company_name} for {offering}? "
            "Include both direct competitors and similar tools with their domains."
        ),
        "market_leaders": (
            "Who are the leading companies in the {category} market? "
            "List company names and websites."
        ),
    }

    def __init__(
        self,
        client: PerplexityClient,
        max_queries: int = 2,
        max_results: int = 10,
        query_delay: float = 0.5,
    ):
        """
        Initialize web search discovery.

        Args:
            client: PerplexityClient instance
            max_queries: Maximum number of queries to run
            max_results: Maximum number of names to return
            query_delay: Pause between queries in seconds
        """
        self.client = client
        self.max_queries = max_queries
        self.max_results = max_results
        self.query_delay = query_delay

    async def discover_competitors(self, company_info: CompanyInfo) -> List[str]:
        """
        Discover competitor names for a company.

        Args:
            company_info: Company metadata (name, url, industry, description)

        Returns:
            Competitor names, most confident first. Never includes the
            company itself or platforms such as review sites.
        """
        category = company_info.industry or "its"
        query_vars = {
            "company_name": company_info.name,
            "domain": normalize_domain(company_info.url),
            "category": category,
            "offering": company_info.description or category,
        }

        all_competitors: List[DiscoveredCompetitor] = []
        queries_to_run = list(self.QUERY_TEMPLATES.items())[: self.max_queries]

        for index, (query_type, template) in enumerate(queries_to_run):
            try:
                question = template.format(**query_vars)
                logger.info(f"Running competitor search query: {query_type}")

                result = await self.client.ask_for_competitors(
                    question,
                    search_recency_filter="year",
                )
                for comp in result.competitors:
                    comp.discovery_source = f"perplexity_{query_type}"
                all_competitors.extend(result.competitors)

            except PerplexityError as e:
                logger.warning(f"Competitor search query '{query_type}' failed: {e}")

            if index < len(queries_to_run) - 1 and self.query_delay:
                await asyncio.sleep(self.query_delay)

        names = self._filter(self._deduplicate(all_competitors), company_info)
        logger.info(f"Web search found {len(names)} competitors for {company_info.name}")
        return names[: self.max_results]

    def _deduplicate(
        self,
        competitors: List[DiscoveredCompetitor],
    ) -> List[DiscoveredCompetitor]:
        """
        Deduplicate competitors by domain/name, keeping highest confidence.
        """
        seen = {}

        for comp in competitors:
            key = comp.domain or normalize_name(comp.name)

            if key in seen:
                if comp.confidence > seen[key].confidence:
                    seen[key] = comp
                elif comp.domain and not seen[key].domain:
                    seen[key].domain = comp.domain
            else:
                seen[key] = comp

        result = list(seen.values())
        result.sort(key=lambda c: c.confidence, reverse=True)
        return result

    def _filter(
        self,
        competitors: List[DiscoveredCompetitor],
        company_info: CompanyInfo,
    ) -> List[str]:
        own_name = normalize_name(company_info.name)
        own_domain = normalize_domain(company_info.url)

        names: List[str] = []
        seen_names = set()
        for comp in competitors:
            key = normalize_name(comp.name)
            if not key or key == own_name or key in seen_names:
                continue
            if own_domain and comp.domain and normalize_domain(comp.domain) == own_domain:
                continue
            if is_excluded_platform(comp.name) or (comp.domain and is_excluded_platform(comp.domain)):
                continue
            seen_names.add(key)
            names.append(comp.name)
        return names


def create_web_search(api_key: Optional[str], model: str = "sonar") -> Optional[WebSearch]:
    """
    Create the web search collaborator.

    Returns:
        WebSearch or None if no Perplexity key is configured
    """
    if not api_key:
        logger.warning("Perplexity API key not configured - web search disabled")
        return None
    return WebSearch(PerplexityClient(api_key=api_key, default_model=model))
