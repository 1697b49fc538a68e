"""
Prompt Generation

Builds the evaluation prompts sent to every provider. Caller-supplied
custom prompts are used verbatim; otherwise the default templates are
instantiated against the company's name, domain and industry.
"""

import logging
from typing import List, Optional

from ..models import Company, Prompt, PromptOrigin

logger = logging.getLogger(__name__)


DEFAULT_INDUSTRY = "products and services"

# Ordered (template_key, template) pairs; order fixes prompt ids
DEFAULT_TEMPLATES = [
    (
        "ranking",
        "What are the top 10 {industry} companies? Rank them from best to worst "
        "and give one sentence on each.",
    ),
    (
        "recommendation",
        "I'm choosing a provider of {industry}. Which companies would you "
        "recommend, and why?",
    ),
    (
        "alternatives",
        "What are the best alternatives to {company} ({domain})? Compare their "
        "strengths and weaknesses.",
    ),
    (
        "comparison",
        "Compare the leading {industry} providers on quality, pricing and "
        "customer satisfaction. Which ones stand out?",
    ),
    (
        "buyer_advice",
        "Which {industry} companies are most trusted by customers, and which "
        "should buyers be cautious about?",
    ),
]


class PromptGenerator:
    """Produces the ordered, frozen prompt list for a run."""

    def __init__(self, templates: Optional[List[tuple]] = None):
        self.templates = templates or DEFAULT_TEMPLATES

    def generate(
        self,
        company: Company,
        custom_prompts: Optional[List[str]] = None,
    ) -> List[Prompt]:
        """
        Build the prompt list.

        Args:
            company: Company under analysis
            custom_prompts: Caller-supplied prompt texts (optional)

        Returns:
            Prompts with ids prompt-1..prompt-N, in order
        """
        custom = self._clean(custom_prompts)
        if custom:
            logger.info(f"Using {len(custom)} custom prompts")
            return [
                Prompt(id=f"prompt-{i}", text=text, origin=PromptOrigin.CUSTOM)
                for i, text in enumerate(custom, start=1)
            ]

        values = {
            "company": company.name,
            "domain": company.normalized_domain,
            "industry": (company.industry or "").strip() or DEFAULT_INDUSTRY,
        }
        prompts = [
            Prompt(
                id=f"prompt-{i}",
                text=template.format(**values),
                origin=PromptOrigin.DEFAULT,
            )
            for i, (_, template) in enumerate(self.templates, start=1)
        ]
        logger.info(f"Generated {len(prompts)} default prompts for {company.name}")
        return prompts

    @staticmethod
    def _clean(custom_prompts: Optional[List[str]]) -> List[str]:
        """Strip prompts, dropping blanks and exact duplicates."""
        cleaned: List[str] = []
        for text in custom_prompts or []:
            text = (text or "").strip()
            if text and text not in cleaned:
                cleaned.append(text)
        return cleaned
