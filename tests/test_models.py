"""
Test Suite: Data Models

Tests request validation, company construction, stage ordering and
camelCase wire serialization.
"""

import json
from datetime import datetime, timezone

import pytest

from brandmonitor.errors import ValidationError
from brandmonitor.models import (
    AnalysisRequest,
    Company,
    CompanyInfo,
    EventType,
    ProgressEvent,
    ProviderResponse,
    ResponseStatus,
    Stage,
)


class TestAnalysisRequestValidation:
    """Test input validation before a run starts."""

    def test_valid_request(self, acme_request):
        acme_request.validate()

    @pytest.mark.parametrize("name,url,missing", [
        ("", "acme.com", {"name"}),
        ("Acme", "", {"url"}),
        ("   ", "  ", {"name", "url"}),
    ])
    def test_missing_fields(self, name, url, missing):
        request = AnalysisRequest(company_name=name, company_url=url)

        with pytest.raises(ValidationError) as exc_info:
            request.validate()

        assert str(exc_info.value) == "Company name and URL are required"
        assert set(exc_info.value.fields) == missing

    def test_malformed_url(self):
        request = AnalysisRequest(company_name="Acme", company_url="not a url")

        with pytest.raises(ValidationError) as exc_info:
            request.validate()

        assert "url" in exc_info.value.fields

    def test_caller_company_data(self, acme_info):
        assert not AnalysisRequest("Acme", "acme.com").has_caller_company_data
        assert AnalysisRequest("Acme", "acme.com", industry="CRM").has_caller_company_data
        assert AnalysisRequest("Acme", "acme.com", company_info=acme_info).has_caller_company_data


class TestCompany:
    """Test company construction and enrichment."""

    def test_create_normalizes_domain(self):
        company = Company.create(name=" Acme ", url="https://www.acme.com/about")

        assert company.name == "Acme"
        assert company.normalized_domain == "acme.com"
        assert company.description is None

    def test_enrich_caller_data_wins(self, acme_info):
        company = Company.create(name="Acme", url="acme.com", industry="CRM")

        enriched = company.enrich(acme_info)

        assert enriched.industry == "CRM"
        assert enriched.description == acme_info.description
        assert enriched.name == "Acme"

    def test_company_is_frozen(self):
        company = Company.create(name="Acme", url="acme.com")

        with pytest.raises(AttributeError):
            company.name = "Other"


class TestStages:
    """Test stage ordering."""

    def test_pipeline_order(self):
        orders = [stage.order for stage in Stage]
        assert orders == sorted(orders)
        assert Stage.INITIALIZING.order == 0
        assert Stage.QUERYING.order < Stage.EXTRACTING.order < Stage.RANKING.order

    def test_terminal_types(self):
        assert EventType.COMPLETE.is_terminal
        assert EventType.ERROR.is_terminal
        assert not EventType.STATUS.is_terminal
        assert not EventType.PROVIDER_RESULT.is_terminal


class TestSerialization:
    """Test wire format."""

    def test_provider_response_camel_case(self):
        response = ProviderResponse(
            provider_id="openai",
            prompt_id="prompt-1",
            raw_text="Acme",
            latency_ms=120,
            status=ResponseStatus.TIMEOUT,
            error_detail="timed out",
        )

        data = response.to_dict()

        assert data == {
            "providerId": "openai",
            "promptId": "prompt-1",
            "rawText": "Acme",
            "latencyMs": 120,
            "status": "timeout",
            "errorDetail": "timed out",
        }
        assert not response.ok

    def test_progress_event_is_json(self):
        event = ProgressEvent(
            type=EventType.STATUS,
            stage=Stage.COMPETITOR_DISCOVERY,
            data={"message": "Identifying competitors"},
        )

        data = json.loads(json.dumps(event.to_dict()))

        assert data["type"] == "status"
        assert data["stage"] == "competitor-discovery"
        assert data["timestamp"].endswith("+00:00")

    def test_company_info_round_trip(self, acme_info):
        restored = CompanyInfo.from_dict(acme_info.to_dict())
        assert restored == acme_info

    def test_company_info_zulu_timestamp(self):
        info = CompanyInfo.from_dict({
            "name": "Acme",
            "url": "https://acme.com",
            "scrapedAt": "2024-05-01T12:30:00Z",
        })

        assert info.scraped_at == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["yesterday", "2024-13-45", 1714566600])
    def test_company_info_bad_timestamp(self, value):
        with pytest.raises(ValidationError) as exc_info:
            CompanyInfo.from_dict({"name": "Acme", "url": "acme.com", "scrapedAt": value})

        assert "scrapedAt" in exc_info.value.fields
