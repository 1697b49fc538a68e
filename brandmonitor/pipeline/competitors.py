"""
Competitor Resolution

Merges user-selected competitors with names discovered by web search
into the canonical, de-duplicated competitor set for a run.

Rules:
- User-provided names are kept verbatim and always retained
- Names are compared by normalized form (case, punctuation, legal suffix)
- On conflict the user-provided entry wins
- Discovered names matching the company itself are dropped; a user
  entry is dropped only when it is exactly the company's name
"""

import logging
from typing import List, Optional

from ..models import Company, Competitor, CompetitorSource
from ..utils.domain import normalize_name

logger = logging.getLogger(__name__)


class CompetitorResolver:
    """Builds the frozen competitor set."""

    def __init__(self, max_discovered: int = 6):
        """
        Args:
            max_discovered: Cap on discovered (non-user) competitors
        """
        self.max_discovered = max_discovered

    def resolve(
        self,
        company: Company,
        user_selected: Optional[List[str]] = None,
        discovered: Optional[List[str]] = None,
    ) -> List[Competitor]:
        """
        Resolve the competitor set.

        Args:
            company: Company under analysis
            user_selected: Names chosen by the caller
            discovered: Names found by web search

        Returns:
            User-provided competitors first (input order), then discovered ones
        """
        own_name = company.name.strip().casefold()
        seen = set()
        competitors: List[Competitor] = []

        for name in user_selected or []:
            name = (name or "").strip()
            key = normalize_name(name)
            # Rankings are keyed by name, so only the company's exact name is dropped
            if not key or key in seen or name.casefold() == own_name:
                continue
            seen.add(key)
            competitors.append(Competitor(name=name, source=CompetitorSource.USER_PROVIDED))

        own_key = normalize_name(company.name)
        if own_key:
            seen.add(own_key)

        added = 0
        for name in discovered or []:
            if added >= self.max_discovered:
                break
            name = (name or "").strip()
            key = normalize_name(name)
            if not key or key in seen:
                continue
            seen.add(key)
            competitors.append(Competitor(name=name, source=CompetitorSource.DISCOVERED))
            added += 1

        logger.info(
            f"Resolved {len(competitors)} competitors "
            f"({len(competitors) - added} user-provided, {added} discovered)"
        )
        return competitors
