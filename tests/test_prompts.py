"""
Test Suite: Prompt Generation and Competitor Resolution

Tests:
- Default template instantiation and custom prompt overrides
- Merging user-selected and discovered competitors
"""

import pytest

from brandmonitor.models import Company, CompetitorSource, PromptOrigin
from brandmonitor.pipeline import CompetitorResolver, PromptGenerator
from brandmonitor.pipeline.prompts import DEFAULT_INDUSTRY, DEFAULT_TEMPLATES


@pytest.fixture
def company():
    return Company.create(name="Acme", url="https://acme.com", industry="CRM software")


class TestPromptGenerator:
    """Test prompt list construction."""

    def test_default_prompts(self, company):
        prompts = PromptGenerator().generate(company)

        assert len(prompts) == len(DEFAULT_TEMPLATES)
        assert [p.id for p in prompts] == [f"prompt-{i}" for i in range(1, len(prompts) + 1)]
        assert all(p.origin == PromptOrigin.DEFAULT for p in prompts)
        assert any("CRM software" in p.text for p in prompts)
        assert any("Acme (acme.com)" in p.text for p in prompts)

    def test_unknown_industry_fallback(self):
        company = Company.create(name="Acme", url="acme.com")

        prompts = PromptGenerator().generate(company)

        assert any(DEFAULT_INDUSTRY in p.text for p in prompts)
        assert all("{" not in p.text for p in prompts)

    def test_custom_prompts_verbatim(self, company):
        custom = ["Best CRM for startups?", "Which CRM has the best API?"]

        prompts = PromptGenerator().generate(company, custom)

        assert [p.text for p in prompts] == custom
        assert all(p.origin == PromptOrigin.CUSTOM for p in prompts)
        assert prompts[1].id == "prompt-2"

    def test_custom_prompts_cleaned(self, company):
        prompts = PromptGenerator().generate(
            company, ["  Best CRM?  ", "", "Best CRM?", "   "]
        )

        assert [p.text for p in prompts] == ["Best CRM?"]

    def test_blank_custom_prompts_use_defaults(self, company):
        prompts = PromptGenerator().generate(company, ["", "  "])

        assert all(p.origin == PromptOrigin.DEFAULT for p in prompts)

    def test_deterministic(self, company):
        generator = PromptGenerator()
        assert generator.generate(company) == generator.generate(company)


class TestCompetitorResolver:
    """Test canonical competitor set."""

    def test_user_competitors_verbatim(self, company):
        competitors = CompetitorResolver().resolve(company, ["HubSpot", "Pipedrive"])

        assert [c.name for c in competitors] == ["HubSpot", "Pipedrive"]
        assert all(c.source == CompetitorSource.USER_PROVIDED for c in competitors)

    def test_case_insensitive_dedup(self, company):
        competitors = CompetitorResolver().resolve(company, ["HubSpot", "hubspot", "HUBSPOT Inc."])

        assert [c.name for c in competitors] == ["HubSpot"]

    def test_user_wins_on_conflict(self, company):
        competitors = CompetitorResolver().resolve(
            company,
            user_selected=["hubspot"],
            discovered=["HubSpot", "Salesforce"],
        )

        assert [(c.name, c.source) for c in competitors] == [
            ("hubspot", CompetitorSource.USER_PROVIDED),
            ("Salesforce", CompetitorSource.DISCOVERED),
        ]

    def test_discovered_company_itself_dropped(self, company):
        competitors = CompetitorResolver().resolve(
            company, discovered=["ACME", "Acme Inc.", "Zoho"]
        )

        assert [c.name for c in competitors] == ["Zoho"]

    def test_user_variants_of_company_name_kept(self, company):
        """Only the company's exact name is removed from the user list."""
        competitors = CompetitorResolver().resolve(
            company,
            user_selected=["Acme Cloud Inc", "Acme Inc", "acme"],
            discovered=["Acme"],
        )

        assert [c.name for c in competitors] == ["Acme Cloud Inc", "Acme Inc"]
        assert all(c.source == CompetitorSource.USER_PROVIDED for c in competitors)

    def test_non_latin_user_competitors_kept(self, company):
        competitors = CompetitorResolver().resolve(
            company, user_selected=["Яндекс", "Сбер", "Zürich", "ЯНДЕКС"]
        )

        assert [c.name for c in competitors] == ["Яндекс", "Сбер", "Zürich"]

    def test_discovered_cap(self, company):
        discovered = [f"Vendor {i}" for i in range(10)]

        competitors = CompetitorResolver(max_discovered=3).resolve(
            company, user_selected=["HubSpot"], discovered=discovered
        )

        assert len(competitors) == 4
        assert competitors[0].name == "HubSpot"

    def test_blank_names_ignored(self, company):
        competitors = CompetitorResolver().resolve(company, ["", "  ", "Zoho"], [""])

        assert [c.name for c in competitors] == ["Zoho"]
