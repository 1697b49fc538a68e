"""
Analysis Orchestrator

Owns the pipeline state machine for one brand-visibility run:

    initializing -> scraping -> competitor-discovery -> prompt-generation
    -> querying -> extracting -> ranking -> finalizing -> complete | failed

Every stage is entered at most once and announced with a status event
before its work begins. scraping is skipped when the caller supplies
pre-scraped company data (or no scraper is configured). Single provider
failures are absorbed inside querying; unrecoverable failures end the
run with exactly one error event.

The run deadline (config.run_timeout) bounds scraping, web search and
querying. A scrape that runs out of time is a ScrapeError; a web search
that runs out of time is skipped like any other web-search failure.
"""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from ..errors import (
    BrandMonitorError,
    ConfigurationError,
    ScrapeError,
    UnexpectedError,
)
from ..models import (
    AnalysisRequest,
    AnalysisResult,
    Company,
    CompanyInfo,
    Competitor,
    EventType,
    Prompt,
    ProgressEvent,
    ProviderIdentity,
    ProviderResponse,
    Stage,
    utcnow,
)
from ..utils.config import PipelineConfig
from .competitors import CompetitorResolver
from .extractor import MentionExtractor
from .fanout import ProviderQueryFanout
from .progress import NullProgressEmitter, ProgressEmitter
from .prompts import PromptGenerator
from .ranking import RankingEngine, rankings_score

logger = logging.getLogger(__name__)


NO_PROVIDERS_MESSAGE = "No AI providers configured. Please set up at least one API key."


def _remaining(deadline: float) -> float:
    """Seconds left before the run deadline (never negative)."""
    return max(0.0, deadline - time.monotonic())


class _RunState:
    """
    Per-run stage tracker.

    Enforces the stage order and the single terminal event.
    """

    def __init__(self, emitter: ProgressEmitter):
        self.emitter = emitter
        self.stage: Optional[Stage] = None
        self.finished = False

    async def enter(self, stage: Stage, message: str, **data):
        if self.stage is not None and stage.order <= self.stage.order:
            raise UnexpectedError(
                f"Stage {stage.value} cannot follow {self.stage.value}"
            )
        self.stage = stage
        logger.info(f"[{stage.value}] {message}")
        await self.emit(EventType.STATUS, {"message": message, **data})

    async def status(self, message: str, **data):
        await self.emit(EventType.STATUS, {"message": message, **data})

    async def emit(self, event_type: EventType, data: dict):
        if self.finished:
            return
        if event_type.is_terminal:
            self.finished = True
        event = ProgressEvent(type=event_type, stage=self.stage or Stage.INITIALIZING, data=data)
        try:
            await self.emitter.emit(event)
        except Exception as e:
            logger.debug(f"Progress emitter failed: {e}")


class AnalysisOrchestrator:
    """
    Runs brand-visibility analyses.

    Collaborators are passed in explicitly; nothing is read from the
    environment here.

    Usage:
        orchestrator = AnalysisOrchestrator(
            registry=ProviderRegistry.from_settings(settings),
            scraper=CompanyScraper(FirecrawlClient(api_key)),
            config=PipelineConfig.from_settings(settings),
        )
        result = await orchestrator.run(request, emitter)
    """

    def __init__(
        self,
        registry,
        scraper=None,
        web_search=None,
        config: Optional[PipelineConfig] = None,
        prompt_generator: Optional[PromptGenerator] = None,
        ranking_engine: Optional[RankingEngine] = None,
    ):
        """
        Args:
            registry: ProviderRegistry (list_enabled + query)
            scraper: Object with async fetch(url, max_age_seconds) -> CompanyInfo
            web_search: Object with async discover_competitors(CompanyInfo) -> [str]
            config: Per-run limits
            prompt_generator: Override the default prompt templates
            ranking_engine: Override the scoring engine
        """
        self.registry = registry
        self.scraper = scraper
        self.web_search = web_search
        self.config = config or PipelineConfig()
        self.prompt_generator = prompt_generator or PromptGenerator()
        self.ranking_engine = ranking_engine or RankingEngine()
        self.competitor_resolver = CompetitorResolver(
            max_discovered=self.config.max_discovered_competitors
        )

    async def run(
        self,
        request: AnalysisRequest,
        emitter: Optional[ProgressEmitter] = None,
    ) -> AnalysisResult:
        """
        Run one analysis end to end.

        Args:
            request: Analysis input
            emitter: Receives every progress event (optional)

        Returns:
            AnalysisResult of the completed run

        Raises:
            ValidationError: Invalid input (raised before any event)
            ConfigurationError: No provider enabled
            ScrapeError: Website could not be scraped and no company data was given
            UnexpectedError: Any other fault
        """
        request.validate()

        state = _RunState(emitter or NullProgressEmitter())
        deadline = time.monotonic() + self.config.run_timeout
        started = time.monotonic()

        try:
            result = await self._execute(request, state, deadline)
        except BrandMonitorError as e:
            logger.warning(f"Analysis for {request.company_name} failed at {self._stage_name(state)}: {e}")
            await state.emit(EventType.ERROR, {"error": str(e)})
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during analysis for {request.company_name}")
            await state.emit(EventType.ERROR, {"error": str(e) or "An unexpected error occurred"})
            raise UnexpectedError(str(e)) from e

        await state.emit(EventType.COMPLETE, result.to_dict())
        logger.info(
            f"Analysis for {result.company.name} complete in {time.monotonic() - started:.1f}s "
            f"(visibility {result.visibility_score})"
        )
        return result

    async def _execute(
        self,
        request: AnalysisRequest,
        state: _RunState,
        deadline: float,
    ) -> AnalysisResult:
        company = request.build_company()

        await state.enter(
            Stage.INITIALIZING,
            f"Starting analysis for {company.name}",
            company=company.to_dict(),
        )
        providers = self.registry.list_enabled()
        if not providers:
            raise ConfigurationError(NO_PROVIDERS_MESSAGE)
        await state.status(
            f"Using {len(providers)} AI providers",
            providers=[p.to_dict() for p in providers],
        )

        company, company_info = await self._acquire_company(request, company, state, deadline)
        competitors = await self._discover_competitors(
            request, company, company_info, state, deadline
        )

        await state.enter(Stage.PROMPT_GENERATION, "Generating analysis prompts")
        prompts = self.prompt_generator.generate(company, request.custom_prompts)
        await state.status(
            f"Generated {len(prompts)} prompts",
            prompts=[p.to_dict() for p in prompts],
        )

        responses = await self._query(prompts, providers, state, deadline)

        await state.enter(Stage.EXTRACTING, "Extracting brand mentions")
        mentions = MentionExtractor(company, competitors).extract_all(responses)
        await state.status(f"Found {len(mentions)} mentions", mentionCount=len(mentions))

        await state.enter(Stage.RANKING, "Calculating visibility scores")
        rankings = self.ranking_engine.rank(company, competitors, mentions, responses)

        await state.enter(Stage.FINALIZING, "Finalizing results")
        return AnalysisResult(
            company=company,
            competitors=competitors,
            visibility_score=rankings_score(rankings, company),
            rankings=rankings,
            provider_responses=responses,
            mentions=mentions,
            generated_at=utcnow(),
            prompts=prompts,
            providers=providers,
        )

    # =========================================================================
    # STAGES
    # =========================================================================

    async def _acquire_company(
        self,
        request: AnalysisRequest,
        company: Company,
        state: _RunState,
        deadline: float,
    ) -> Tuple[Company, Optional[CompanyInfo]]:
        """Scraping stage: enrich the company from its website."""
        if request.company_info is not None:
            logger.info("Using caller-supplied company data; skipping scrape")
            return company.enrich(request.company_info), request.company_info

        if self.scraper is None:
            logger.info("No scraper configured; skipping scrape")
            return company, None

        await state.enter(Stage.SCRAPING, f"Scraping {company.url}")
        try:
            info = await self._fetch_company(company.url, deadline)
        except ScrapeError as e:
            if not request.has_caller_company_data:
                raise
            logger.warning(f"Scrape failed for {company.url}, continuing with provided data: {e}")
            await state.status("Could not scrape website; using provided company details")
            return company, None

        await state.status("Company information retrieved", companyInfo=info.to_dict())
        return company.enrich(info), info

    async def _fetch_company(self, url: str, deadline: float) -> CompanyInfo:
        """Scrape within the run deadline; running out of time is a ScrapeError."""
        try:
            return await asyncio.wait_for(
                self.scraper.fetch(url, max_age_seconds=self.config.scrape_max_age),
                timeout=_remaining(deadline),
            )
        except asyncio.TimeoutError:
            raise ScrapeError(f"Scraping {url} exceeded the run deadline") from None

    async def _discover_competitors(
        self,
        request: AnalysisRequest,
        company: Company,
        company_info: Optional[CompanyInfo],
        state: _RunState,
        deadline: float,
    ) -> List[Competitor]:
        await state.enter(Stage.COMPETITOR_DISCOVERY, "Identifying competitors")

        discovered: List[str] = []
        if request.use_web_search:
            if self.web_search is None:
                logger.warning("Web search requested but not configured")
            else:
                info = company_info or CompanyInfo(
                    name=company.name,
                    url=company.url,
                    description=company.description or "",
                    industry=company.industry or "",
                )
                try:
                    discovered = await asyncio.wait_for(
                        self.web_search.discover_competitors(info),
                        timeout=_remaining(deadline),
                    )
                except asyncio.TimeoutError:
                    logger.warning("Competitor web search exceeded the run deadline")
                except BrandMonitorError as e:
                    logger.warning(f"Competitor web search failed: {e}")

        competitors = self.competitor_resolver.resolve(
            company,
            user_selected=request.user_selected_competitors,
            discovered=discovered,
        )
        await state.status(
            f"Tracking {len(competitors)} competitors",
            competitors=[c.to_dict() for c in competitors],
        )
        return competitors

    async def _query(
        self,
        prompts: List[Prompt],
        providers: List[ProviderIdentity],
        state: _RunState,
        deadline: float,
    ) -> List[ProviderResponse]:
        """Querying stage: emits one provider-result event per response."""
        total = len(prompts) * len(providers)
        await state.enter(
            Stage.QUERYING,
            f"Querying {len(providers)} AI providers",
            totalQueries=total,
        )

        fanout = ProviderQueryFanout(
            self.registry,
            timeout=self.config.provider_timeout,
            max_concurrency=self.config.max_concurrency,
        )
        responses: List[ProviderResponse] = []
        async for response in fanout.run(prompts, providers, deadline=deadline):
            responses.append(response)
            await state.emit(
                EventType.PROVIDER_RESULT,
                {**response.to_dict(), "progress": {"completed": len(responses), "total": total}},
            )

        # Completion order varies between runs; the result uses input order
        prompt_order = {p.id: i for i, p in enumerate(prompts)}
        provider_order = {p.id: i for i, p in enumerate(providers)}
        responses.sort(key=lambda r: (prompt_order[r.prompt_id], provider_order[r.provider_id]))

        failed = sum(1 for r in responses if not r.ok)
        logger.info(f"Collected {len(responses)} responses ({failed} failed)")
        return responses

    @staticmethod
    def _stage_name(state: _RunState) -> str:
        return state.stage.value if state.stage else "start"
