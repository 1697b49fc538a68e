"""
Test Suite: Analysis Orchestrator

Tests the pipeline state machine end to end with fake providers:
- Stage order and the single terminal event
- N x M responses regardless of failures
- Failure modes (no providers, scrape errors, web search errors)
- Reference scenarios and idempotence
"""

import time
from unittest.mock import patch

import pytest

from brandmonitor.errors import (
    ConfigurationError,
    ProviderError,
    ScrapeError,
    UnexpectedError,
    ValidationError,
)
from brandmonitor.models import (
    AnalysisRequest,
    CompetitorSource,
    EventType,
    ResponseStatus,
    Stage,
    SubjectType,
)
from brandmonitor.pipeline import CallbackProgressEmitter
from brandmonitor.pipeline.prompts import DEFAULT_TEMPLATES
from brandmonitor.utils.config import PipelineConfig

from conftest import FakeProvider, FakeScraper, FakeWebSearch


STAGE_ORDER = [stage.value for stage in Stage]


def _assert_monotonic(stages):
    indexes = [STAGE_ORDER.index(s) for s in stages]
    assert indexes == sorted(indexes), f"Stages out of order: {stages}"


class TestPipelineStages:
    """Test state machine ordering."""

    @pytest.mark.asyncio
    async def test_full_stage_sequence(self, make_orchestrator, acme_info, emitter):
        orchestrator = make_orchestrator(
            [FakeProvider("openai", text="Acme is great.")],
            scraper=FakeScraper(info=acme_info),
        )

        await orchestrator.run(AnalysisRequest("Acme", "acme.com"), emitter)

        entered = [e.stage.value for e in emitter.events if e.type == EventType.STATUS]
        assert list(dict.fromkeys(entered)) == STAGE_ORDER
        _assert_monotonic(emitter.stages)

    @pytest.mark.asyncio
    async def test_exactly_one_terminal_event(self, make_orchestrator, acme_request, emitter):
        orchestrator = make_orchestrator([FakeProvider("openai", text="Acme")])

        await orchestrator.run(acme_request, emitter)

        terminal = [e for e in emitter.events if e.is_terminal]
        assert len(terminal) == 1
        assert emitter.events[-1].type == EventType.COMPLETE
        assert emitter.events[-1].stage == Stage.FINALIZING

    @pytest.mark.asyncio
    async def test_scraping_skipped_with_company_info(self, make_orchestrator, acme_info, emitter):
        scraper = FakeScraper(info=acme_info)
        orchestrator = make_orchestrator([FakeProvider("openai", text="Acme")], scraper=scraper)
        request = AnalysisRequest("Acme", "acme.com", company_info=acme_info)

        result = await orchestrator.run(request, emitter)

        assert scraper.calls == []
        assert "scraping" not in emitter.stages
        assert result.company.industry == acme_info.industry

    @pytest.mark.asyncio
    async def test_provider_results_inside_querying(self, make_orchestrator, acme_request, emitter):
        providers = [FakeProvider("openai", text="Acme"), FakeProvider("anthropic", text="Acme")]
        orchestrator = make_orchestrator(providers)

        await orchestrator.run(acme_request, emitter)

        results = [e for e in emitter.events if e.type == EventType.PROVIDER_RESULT]
        assert len(results) == 2 * len(DEFAULT_TEMPLATES)
        assert all(e.stage == Stage.QUERYING for e in results)
        assert results[-1].data["progress"] == {"completed": len(results), "total": len(results)}
        _assert_monotonic(emitter.stages)

    @pytest.mark.asyncio
    async def test_callback_emitter_failure_does_not_abort(self, make_orchestrator, acme_request):
        def broken(event):
            raise BrokenPipeError("client disconnected")

        orchestrator = make_orchestrator([FakeProvider("openai", text="Acme")])

        result = await orchestrator.run(acme_request, CallbackProgressEmitter(broken))

        assert result.visibility_score > 0

    @pytest.mark.asyncio
    async def test_runs_without_emitter(self, make_orchestrator, acme_request):
        orchestrator = make_orchestrator([FakeProvider("openai", text="Acme")])

        result = await orchestrator.run(acme_request)

        assert result.rankings[0].subject == "Acme"


class TestResponses:
    """Test N x M invariant and failure degradation."""

    @pytest.mark.asyncio
    async def test_n_times_m_responses(self, make_orchestrator, emitter):
        providers = [
            FakeProvider("openai", text="Acme"),
            FakeProvider("anthropic", error=ProviderError("overloaded")),
            FakeProvider("google", delay=5.0),
        ]
        orchestrator = make_orchestrator(providers)
        request = AnalysisRequest("Acme", "acme.com", custom_prompts=["One?", "Two?"])

        result = await orchestrator.run(request, emitter)

        assert len(result.provider_responses) == 3 * 2
        statuses = {(r.provider_id, r.status) for r in result.provider_responses}
        assert statuses == {
            ("openai", ResponseStatus.OK),
            ("anthropic", ResponseStatus.ERROR),
            ("google", ResponseStatus.TIMEOUT),
        }

    @pytest.mark.asyncio
    async def test_responses_in_input_order(self, make_orchestrator):
        providers = [FakeProvider("openai", text="A", delay=0.05), FakeProvider("anthropic", text="B")]
        orchestrator = make_orchestrator(providers)
        request = AnalysisRequest("Acme", "acme.com", custom_prompts=["One?", "Two?"])

        result = await orchestrator.run(request)

        assert [(r.prompt_id, r.provider_id) for r in result.provider_responses] == [
            ("prompt-1", "openai"),
            ("prompt-1", "anthropic"),
            ("prompt-2", "openai"),
            ("prompt-2", "anthropic"),
        ]

    @pytest.mark.asyncio
    async def test_all_providers_fail(self, make_orchestrator, emitter):
        providers = [
            FakeProvider("openai", error=ProviderError("invalid key", status_code=401)),
            FakeProvider("anthropic", error=ProviderError("overloaded", status_code=529)),
        ]
        orchestrator = make_orchestrator(providers)
        request = AnalysisRequest(
            "Acme", "acme.com", user_selected_competitors=["HubSpot"]
        )

        result = await orchestrator.run(request, emitter)

        assert emitter.events[-1].type == EventType.COMPLETE
        assert result.mentions == []
        assert result.visibility_score == 0
        assert all(r.score == 0 for r in result.rankings)
        assert len(result.rankings) == 2

    @pytest.mark.asyncio
    async def test_run_deadline_force_finishes(self, make_orchestrator, acme_request, emitter):
        config = PipelineConfig(provider_timeout=10.0, run_timeout=0.3)
        providers = [FakeProvider("openai", text="Acme"), FakeProvider("slow", delay=10.0)]
        orchestrator = make_orchestrator(providers, config=config)

        result = await orchestrator.run(acme_request, emitter)

        assert len(result.provider_responses) == 2 * len(DEFAULT_TEMPLATES)
        slow = [r for r in result.provider_responses if r.provider_id == "slow"]
        assert all(r.status == ResponseStatus.TIMEOUT for r in slow)
        assert emitter.events[-1].type == EventType.COMPLETE


class TestRunDeadlineBeforeQuerying:
    """Test that the run deadline also bounds scraping and web search."""

    @pytest.mark.asyncio
    async def test_slow_web_search_abandoned(self, make_orchestrator, emitter):
        config = PipelineConfig(provider_timeout=0.2, run_timeout=0.3)
        search = FakeWebSearch(names=["Salesforce"], delay=5.0)
        orchestrator = make_orchestrator(
            [FakeProvider("openai", text="Acme")], web_search=search, config=config
        )
        request = AnalysisRequest(
            "Acme", "acme.com", user_selected_competitors=["HubSpot"], use_web_search=True
        )

        started = time.monotonic()
        result = await orchestrator.run(request, emitter)

        assert time.monotonic() - started < 2.0
        assert [c.name for c in result.competitors] == ["HubSpot"]
        assert len(result.provider_responses) == len(DEFAULT_TEMPLATES)
        assert emitter.events[-1].type == EventType.COMPLETE

    @pytest.mark.asyncio
    async def test_slow_scrape_fails_without_company_data(
        self, make_orchestrator, acme_info, acme_request, emitter
    ):
        config = PipelineConfig(provider_timeout=0.2, run_timeout=0.3)
        orchestrator = make_orchestrator(
            [FakeProvider("openai", text="Acme")],
            scraper=FakeScraper(info=acme_info, delay=5.0),
            config=config,
        )

        started = time.monotonic()
        with pytest.raises(ScrapeError, match="run deadline"):
            await orchestrator.run(acme_request, emitter)

        assert time.monotonic() - started < 2.0
        assert emitter.events[-1].type == EventType.ERROR
        assert emitter.events[-1].stage == Stage.SCRAPING

    @pytest.mark.asyncio
    async def test_slow_scrape_recovered_with_company_data(
        self, make_orchestrator, acme_info, emitter
    ):
        config = PipelineConfig(provider_timeout=0.2, run_timeout=0.3)
        orchestrator = make_orchestrator(
            [FakeProvider("openai", text="Acme")],
            scraper=FakeScraper(info=acme_info, delay=5.0),
            config=config,
        )
        request = AnalysisRequest("Acme", "acme.com", industry="CRM software")

        started = time.monotonic()
        result = await orchestrator.run(request, emitter)

        assert time.monotonic() - started < 2.0
        assert result.company.industry == "CRM software"
        assert emitter.events[-1].type == EventType.COMPLETE


class TestFailures:
    """Test terminal failures."""

    @pytest.mark.asyncio
    async def test_no_providers(self, make_orchestrator, acme_info, acme_request, emitter):
        scraper = FakeScraper(info=acme_info)
        orchestrator = make_orchestrator([], scraper=scraper)

        with pytest.raises(ConfigurationError):
            await orchestrator.run(acme_request, emitter)

        assert "querying" not in emitter.stages
        assert scraper.calls == []
        assert emitter.events[-1].type == EventType.ERROR
        assert "No AI providers configured" in emitter.events[-1].data["error"]
        assert sum(1 for e in emitter.events if e.is_terminal) == 1

    @pytest.mark.asyncio
    async def test_validation_error_emits_nothing(self, make_orchestrator, emitter):
        orchestrator = make_orchestrator([FakeProvider("openai")])

        with pytest.raises(ValidationError):
            await orchestrator.run(AnalysisRequest("", "acme.com"), emitter)

        assert emitter.events == []

    @pytest.mark.asyncio
    async def test_scrape_error_fatal_without_company_data(
        self, make_orchestrator, failing_scraper, acme_request, emitter
    ):
        provider = FakeProvider("openai", text="Acme")
        orchestrator = make_orchestrator([provider], scraper=failing_scraper)

        with pytest.raises(ScrapeError):
            await orchestrator.run(acme_request, emitter)

        assert emitter.events[-1].type == EventType.ERROR
        assert emitter.events[-1].stage == Stage.SCRAPING
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_scrape_error_recovered_with_company_data(
        self, make_orchestrator, failing_scraper, emitter
    ):
        orchestrator = make_orchestrator(
            [FakeProvider("openai", text="Acme")], scraper=failing_scraper
        )
        request = AnalysisRequest("Acme", "acme.com", industry="CRM software")

        result = await orchestrator.run(request, emitter)

        assert emitter.events[-1].type == EventType.COMPLETE
        assert result.company.industry == "CRM software"

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_error_event(self, make_orchestrator, acme_request, emitter):
        orchestrator = make_orchestrator([FakeProvider("openai", text="Acme")])
        orchestrator.ranking_engine.rank = lambda *args, **kwargs: 1 / 0

        with pytest.raises(UnexpectedError):
            await orchestrator.run(acme_request, emitter)

        assert emitter.events[-1].type == EventType.ERROR
        assert emitter.events[-1].stage == Stage.RANKING


class TestCompetitorDiscovery:
    """Test web search during competitor-discovery."""

    @pytest.mark.asyncio
    async def test_web_search_merged(self, make_orchestrator, emitter):
        search = FakeWebSearch(names=["HubSpot", "Salesforce", "Acme"])
        orchestrator = make_orchestrator([FakeProvider("openai", text="x")], web_search=search)
        request = AnalysisRequest(
            "Acme", "acme.com", user_selected_competitors=["hubspot"], use_web_search=True
        )

        result = await orchestrator.run(request, emitter)

        assert [(c.name, c.source) for c in result.competitors] == [
            ("hubspot", CompetitorSource.USER_PROVIDED),
            ("Salesforce", CompetitorSource.DISCOVERED),
        ]

    @pytest.mark.asyncio
    async def test_web_search_not_used_when_disabled(self, make_orchestrator, acme_request):
        search = FakeWebSearch(names=["HubSpot"])
        orchestrator = make_orchestrator([FakeProvider("openai", text="x")], web_search=search)

        result = await orchestrator.run(acme_request)

        assert search.calls == []
        assert result.competitors == []

    @pytest.mark.asyncio
    async def test_web_search_failure_recovered(self, make_orchestrator, emitter):
        search = FakeWebSearch(error=ProviderError("search down"))
        orchestrator = make_orchestrator([FakeProvider("openai", text="x")], web_search=search)
        request = AnalysisRequest(
            "Acme", "acme.com", user_selected_competitors=["HubSpot"], use_web_search=True
        )

        result = await orchestrator.run(request, emitter)

        assert [c.name for c in result.competitors] == ["HubSpot"]
        assert emitter.events[-1].type == EventType.COMPLETE


class TestScenarios:
    """Reference scenarios."""

    @pytest.mark.asyncio
    async def test_single_provider_company_only(self, make_orchestrator, emitter):
        """Unlisted names in the answer are not ranked."""
        orchestrator = make_orchestrator(
            [FakeProvider("openai", text="Acme is a leader; CompetitorX follows.")]
        )

        result = await orchestrator.run(AnalysisRequest("Acme", "acme.com"), emitter)

        assert [r.subject for r in result.rankings] == ["Acme"]
        assert result.rankings[0].score > 0
        assert result.visibility_score == result.rankings[0].score
        assert result.competitors == []

    @pytest.mark.asyncio
    async def test_two_providers_one_times_out(self, make_orchestrator, emitter):
        providers = [
            FakeProvider("openai", text="Acme and HubSpot are both popular choices."),
            FakeProvider("slow", delay=5.0),
        ]
        orchestrator = make_orchestrator(providers)
        request = AnalysisRequest(
            "Acme", "acme.com",
            custom_prompts=["Best CRM?"],
            user_selected_competitors=["HubSpot"],
        )

        result = await orchestrator.run(request, emitter)

        statuses = sorted(r.status.value for r in result.provider_responses)
        assert statuses == ["ok", "timeout"]
        assert sum(1 for r in result.provider_responses if not r.ok) == 1
        assert {(r.subject, r.subject_type) for r in result.rankings} == {
            ("Acme", SubjectType.COMPANY),
            ("HubSpot", SubjectType.COMPETITOR),
        }
        assert result.rankings[0].subject == "Acme"

    @pytest.mark.asyncio
    async def test_idempotent_results(self, make_orchestrator):
        def build():
            return make_orchestrator([
                FakeProvider("openai", text="1. HubSpot (excellent) 2. Acme - avoid for big teams"),
                FakeProvider("anthropic", text="Acme is reliable. Zoho is cheap."),
            ])

        request = AnalysisRequest(
            "Acme", "acme.com", user_selected_competitors=["HubSpot", "Zoho"]
        )

        # Fixed fan-out clock so latencyMs is identical between runs
        with patch("brandmonitor.pipeline.fanout.time") as clock:
            clock.monotonic.return_value = 0.0
            first = (await build().run(request)).to_dict()
            second = (await build().run(request)).to_dict()

        for data in (first, second):
            data.pop("generatedAt")

        assert first == second
