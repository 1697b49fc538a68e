"""
Pytest Configuration and Shared Fixtures

Provides fake collaborators (AI providers, scraper, web search) and
common fixtures for all test modules.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from brandmonitor.errors import ScrapeError
from brandmonitor.models import AnalysisRequest, CompanyInfo, ProgressEvent
from brandmonitor.pipeline import AnalysisOrchestrator, ProgressEmitter
from brandmonitor.providers import ProviderClient, ProviderRegistry
from brandmonitor.providers.base import ProviderReply
from brandmonitor.utils.config import PipelineConfig


# ============================================================================
# Fake Collaborators
# ============================================================================

class FakeProvider(ProviderClient):
    """
    Scripted AI provider.

    Returns fixed text (optionally per prompt substring), sleeps for
    `delay` seconds, or raises `error`.
    """

    def __init__(
        self,
        provider_id: str,
        text: str = "",
        delay: float = 0.0,
        error: Optional[Exception] = None,
        replies: Optional[Dict[str, str]] = None,
        display_name: Optional[str] = None,
    ):
        super().__init__(model=f"{provider_id}-test")
        self.provider_id = provider_id
        self.display_name = display_name or provider_id.title()
        self.text = text
        self.delay = delay
        self.error = error
        self.replies = replies or {}
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def query(self, prompt_text: str, timeout: float) -> ProviderReply:
        self.calls.append(prompt_text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            for fragment, reply in self.replies.items():
                if fragment in prompt_text:
                    return ProviderReply(text=reply, model=self.model)
            return ProviderReply(text=self.text, model=self.model)
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True


class FakeScraper:
    """Scraper collaborator returning fixed CompanyInfo or raising."""

    def __init__(
        self,
        info: Optional[CompanyInfo] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.info = info
        self.error = error
        self.delay = delay
        self.calls = []

    async def fetch(self, url: str, max_age_seconds: Optional[int] = None) -> CompanyInfo:
        self.calls.append((url, max_age_seconds))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.info


class FakeWebSearch:
    """Web search collaborator returning fixed names or raising."""

    def __init__(
        self,
        names: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.names = names or []
        self.error = error
        self.delay = delay
        self.calls = []

    async def discover_competitors(self, company_info: CompanyInfo) -> List[str]:
        self.calls.append(company_info)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.names)


class RecordingEmitter(ProgressEmitter):
    """Collects every emitted event."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    async def emit(self, event: ProgressEvent):
        self.events.append(event)

    @property
    def stages(self) -> List[str]:
        return [e.stage.value for e in self.events]

    @property
    def types(self) -> List[str]:
        return [e.type.value for e in self.events]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def acme_request() -> AnalysisRequest:
    """Minimal valid analysis request."""
    return AnalysisRequest(company_name="Acme", company_url="acme.com")


@pytest.fixture
def acme_info() -> CompanyInfo:
    """Scraped company info for Acme."""
    return CompanyInfo(
        name="Acme",
        url="https://acme.com",
        description="Project management software for small teams",
        industry="project management software",
        keywords=["tasks", "kanban"],
    )


@pytest.fixture
def fast_config() -> PipelineConfig:
    """Short timeouts so timeout paths run quickly."""
    return PipelineConfig(
        provider_timeout=0.2,
        max_concurrency=4,
        run_timeout=5.0,
        scrape_max_age=3600,
        max_discovered_competitors=6,
        event_queue_size=100,
    )


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def make_orchestrator(fast_config):
    """Factory: orchestrator over the given fake providers."""

    def _make(providers, scraper=None, web_search=None, config=None):
        return AnalysisOrchestrator(
            registry=ProviderRegistry(providers),
            scraper=scraper,
            web_search=web_search,
            config=config or fast_config,
        )

    return _make


@pytest.fixture
def failing_scraper() -> FakeScraper:
    return FakeScraper(error=ScrapeError("Failed to scrape https://acme.com: blocked"))


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
