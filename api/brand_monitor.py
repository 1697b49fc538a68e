"""
Brand Monitor API

Endpoints:
- POST /api/brand-monitor/analyze          Run an analysis, streamed as SSE
- POST /api/brand-monitor/check-providers  Which AI providers are configured
- POST /api/brand-monitor/scrape           Scrape company info from a URL
- POST /api/brand-monitor/batch-scrape     Scrape several URLs; failures are reported per URL
- POST /api/brand-monitor/web-search       Discover competitors with web search
- GET/POST /api/brand-monitor/analyses     List / save analyses
- GET/DELETE /api/brand-monitor/analyses/{analysis_id}
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from brandmonitor.errors import ScrapeError, ValidationError
from brandmonitor.integrations import (
    CompanyScraper,
    FirecrawlClient,
    WebSearch,
    create_web_search,
)
from brandmonitor.models import AnalysisRequest, CompanyInfo, ProgressEvent
from brandmonitor.persistence import AnalysisStore
from brandmonitor.pipeline import (
    AnalysisOrchestrator,
    error_event,
    format_sse,
    stream_analysis,
)
from brandmonitor.providers import ProviderRegistry
from brandmonitor.utils.config import PipelineConfig, Settings
from brandmonitor.utils.domain import normalize_domain, normalize_url

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/brand-monitor", tags=["Brand Monitor"])


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

NO_PROVIDERS_ERROR = "No AI providers configured. Please set at least one API key."

MAX_BATCH_URLS = 20


# =============================================================================
# SERVICES
# =============================================================================


@dataclass
class BrandMonitorServices:
    """Collaborators shared by all requests, built once at startup."""
    registry: ProviderRegistry
    store: AnalysisStore
    config: PipelineConfig
    scraper: Optional[CompanyScraper] = None
    web_search: Optional[WebSearch] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrandMonitorServices":
        scraper = None
        if settings.FIRECRAWL_API_KEY:
            scraper = CompanyScraper(FirecrawlClient(api_key=settings.FIRECRAWL_API_KEY))
        else:
            logger.warning("Firecrawl API key not configured - website scraping disabled")

        return cls(
            registry=ProviderRegistry.from_settings(settings),
            store=AnalysisStore(storage_path=settings.ANALYSES_STORAGE_PATH),
            config=PipelineConfig.from_settings(settings),
            scraper=scraper,
            web_search=create_web_search(settings.PERPLEXITY_API_KEY, settings.PERPLEXITY_MODEL),
        )

    def create_orchestrator(self) -> AnalysisOrchestrator:
        return AnalysisOrchestrator(
            registry=self.registry,
            scraper=self.scraper,
            web_search=self.web_search,
            config=self.config,
        )

    async def close(self):
        await self.registry.close()
        if self.scraper is not None:
            await self.scraper.client.close()
        if self.web_search is not None:
            await self.web_search.client.close()


def get_services(request: Request) -> BrandMonitorServices:
    """Dependency: services attached to the application."""
    return request.app.state.services


# =============================================================================
# REQUEST MODELS
# =============================================================================


class CompanyInput(BaseModel):
    """Company as sent by the client."""
    name: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None
    scraped_data: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="scrapedData",
        description="Company info from a previous /scrape call; skips scraping",
    )

    class Config:
        populate_by_name = True


class AnalyzeRequest(BaseModel):
    """Request to run a brand visibility analysis."""
    company: Optional[CompanyInput] = None
    custom_prompts: Optional[List[str]] = Field(default=None, alias="customPrompts")
    user_selected_competitors: Optional[List[str]] = Field(
        default=None, alias="userSelectedCompetitors"
    )
    use_web_search: bool = Field(default=False, alias="useWebSearch")

    class Config:
        populate_by_name = True

    def to_analysis_request(self) -> AnalysisRequest:
        company = self.company or CompanyInput()
        company_info = None
        if company.scraped_data:
            data = dict(company.scraped_data)
            data.setdefault("name", company.name or "")
            data.setdefault("url", company.url or "")
            company_info = CompanyInfo.from_dict(data)

        return AnalysisRequest(
            company_name=company.name or "",
            company_url=company.url or "",
            description=company.description,
            industry=company.industry,
            company_info=company_info,
            custom_prompts=self.custom_prompts,
            user_selected_competitors=self.user_selected_competitors,
            use_web_search=self.use_web_search,
        )


class ScrapeRequest(BaseModel):
    """Request to scrape a company website."""
    url: Optional[str] = None
    max_age: Optional[int] = Field(
        default=None,
        alias="maxAge",
        description="Accept a cached scrape younger than this many seconds",
    )

    class Config:
        populate_by_name = True


class BatchScrapeRequest(BaseModel):
    """Request to scrape several company websites."""
    urls: Optional[List[str]] = None
    max_age: Optional[int] = Field(default=None, alias="maxAge")

    class Config:
        populate_by_name = True


class WebSearchRequest(BaseModel):
    """Request to discover competitors for a company."""
    company: Optional[CompanyInput] = None


class SaveAnalysisRequest(BaseModel):
    """Analysis payload saved by the client."""
    company_name: str = Field(..., alias="companyName")
    url: str
    industry: Optional[str] = None
    analysis_data: Dict[str, Any] = Field(default_factory=dict, alias="analysisData")
    competitors: Optional[List[Any]] = None
    prompts: Optional[List[Any]] = None

    class Config:
        populate_by_name = True


# =============================================================================
# ANALYSIS STREAM
# =============================================================================


async def _sse(events: AsyncIterator[ProgressEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield format_sse(event)


async def _single_event(event: ProgressEvent) -> AsyncIterator[str]:
    yield format_sse(event)


@router.post("/analyze")
async def analyze(
    body: AnalyzeRequest,
    services: BrandMonitorServices = Depends(get_services),
):
    """
    Run a brand visibility analysis.

    Streams progress events as Server-Sent Events, ending with one
    "complete" or "error" event. Completed results are saved even if
    the client disconnects before the end of the stream.
    """
    request = body.to_analysis_request()
    request.validate()

    try:
        orchestrator = services.create_orchestrator()
    except Exception:
        logger.exception("Failed to start analysis")
        return StreamingResponse(
            _single_event(error_event("An unexpected error occurred")),
            status_code=500,
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    logger.info(f"Starting analysis for: {request.company_name} ({request.company_url})")

    events = stream_analysis(
        orchestrator,
        request,
        queue_size=services.config.event_queue_size,
        on_complete=services.store.save_result,
    )
    return StreamingResponse(
        _sse(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# =============================================================================
# PROVIDERS / SCRAPING / WEB SEARCH
# =============================================================================


@router.post("/check-providers")
async def check_providers(services: BrandMonitorServices = Depends(get_services)):
    """List display names of configured AI providers."""
    providers = [p.display_name for p in services.registry.list_enabled()]
    if not providers:
        return {"providers": [], "error": NO_PROVIDERS_ERROR}
    return {"providers": providers}


@router.post("/scrape")
async def scrape(
    body: ScrapeRequest,
    services: BrandMonitorServices = Depends(get_services),
):
    """Scrape company information from a website."""
    if not (body.url or "").strip():
        raise ValidationError("Invalid request", {"url": "URL is required"})

    url = normalize_url(body.url)
    if "." not in normalize_domain(url):
        raise ValidationError("Invalid URL format", {"url": "Please provide a valid URL"})

    if services.scraper is None:
        raise HTTPException(status_code=503, detail="Website scraping is not configured")

    logger.info(f"Scraping company info: {url}")
    max_age = body.max_age if body.max_age is not None else services.config.scrape_max_age
    try:
        info = await services.scraper.fetch(url, max_age_seconds=max_age)
    except ScrapeError as e:
        logger.warning(f"Scrape failed for {url}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return {"success": True, "data": info.to_dict(), "url": url}


@router.post("/batch-scrape")
async def batch_scrape(
    body: BatchScrapeRequest,
    services: BrandMonitorServices = Depends(get_services),
):
    """
    Scrape several company websites concurrently.

    One entry per requested URL, in request order. A URL that is
    malformed or fails to scrape gets an error entry; the others are
    unaffected.
    """
    urls = [u for u in (body.urls or []) if (u or "").strip()]
    if not urls:
        raise ValidationError("Invalid request", {"urls": "At least one URL is required"})
    if len(urls) > MAX_BATCH_URLS:
        raise ValidationError(
            "Too many URLs",
            {"urls": f"At most {MAX_BATCH_URLS} URLs per request"},
        )

    if services.scraper is None:
        raise HTTPException(status_code=503, detail="Website scraping is not configured")

    max_age = body.max_age if body.max_age is not None else services.config.scrape_max_age

    async def scrape_one(raw_url: str) -> Dict[str, Any]:
        url = normalize_url(raw_url)
        if "." not in normalize_domain(url):
            return {"url": raw_url, "success": False, "error": "Invalid URL format"}
        try:
            info = await services.scraper.fetch(url, max_age_seconds=max_age)
        except ScrapeError as e:
            logger.warning(f"Batch scrape failed for {url}: {e}")
            return {"url": url, "success": False, "error": str(e)}
        return {"url": url, "success": True, "data": info.to_dict()}

    logger.info(f"Batch scraping {len(urls)} URLs")
    results = await asyncio.gather(*(scrape_one(u) for u in urls))
    succeeded = sum(1 for r in results if r["success"])
    logger.info(f"Batch scrape complete: {succeeded}/{len(results)} succeeded")
    return {"results": results}


@router.post("/web-search")
async def web_search(
    body: WebSearchRequest,
    services: BrandMonitorServices = Depends(get_services),
):
    """Discover competitors for a company with live web search."""
    company = body.company or CompanyInput()
    if not (company.name or "").strip() or not (company.url or "").strip():
        raise ValidationError(
            "Company name and URL are required",
            {"company": "Company name and URL are required"},
        )

    if services.web_search is None:
        raise HTTPException(status_code=503, detail="Web search is not configured")

    info = CompanyInfo(
        name=company.name.strip(),
        url=normalize_url(company.url),
        description=company.description or "",
        industry=company.industry or "",
    )
    competitors = await services.web_search.discover_competitors(info)
    return {"competitors": competitors}


# =============================================================================
# SAVED ANALYSES
# =============================================================================


@router.get("/analyses")
async def list_analyses(
    limit: int = 100,
    services: BrandMonitorServices = Depends(get_services),
):
    """List saved analyses, newest first."""
    return [saved.summary() for saved in services.store.list_analyses(limit=limit)]


@router.post("/analyses")
async def save_analysis(
    body: SaveAnalysisRequest,
    services: BrandMonitorServices = Depends(get_services),
):
    """Save an analysis produced by the client."""
    analysis = dict(body.analysis_data)
    if body.competitors is not None:
        analysis.setdefault("competitors", body.competitors)
    if body.prompts is not None:
        analysis.setdefault("prompts", body.prompts)

    saved = services.store.save(
        company_name=body.company_name,
        url=body.url,
        analysis=analysis,
        industry=body.industry,
        visibility_score=analysis.get("visibilityScore"),
    )
    return {"success": True, "id": saved.analysis_id}


@router.get("/analyses/{analysis_id}")
async def get_analysis(
    analysis_id: str,
    services: BrandMonitorServices = Depends(get_services),
):
    saved = services.store.get(analysis_id)
    if saved is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return saved.to_dict()


@router.delete("/analyses/{analysis_id}")
async def delete_analysis(
    analysis_id: str,
    services: BrandMonitorServices = Depends(get_services),
):
    if not services.store.delete(analysis_id):
        raise HTTPException(status_code=404, detail="Analysis not found")
    return {"success": True}
