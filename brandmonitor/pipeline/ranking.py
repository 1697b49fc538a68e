"""
Visibility Ranking

Aggregates mentions into one visibility score per subject and a total
order over the company and its competitors.

Scoring:
    per (prompt, provider) pair:  presence x position_weight x sentiment_weight
    score = 100 x sum(pair scores) / number of pairs

A subject contributes at most once per pair, using its best position
and the sentiment of its first mention in that pair. Failed calls still
count as pairs, so provider failures lower scores rather than raising
them.

Ordering: score desc, mention count desc, name (case-insensitive) asc.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..models import (
    Company,
    Competitor,
    Mention,
    ProviderResponse,
    RankingEntry,
    Sentiment,
    SubjectType,
)

logger = logging.getLogger(__name__)


SENTIMENT_WEIGHTS = {
    Sentiment.POSITIVE: 1.0,
    Sentiment.NEUTRAL: 0.7,
    Sentiment.NEGATIVE: 0.3,
}

DEFAULT_POSITION = 3


def position_weight(position: Optional[int]) -> float:
    """
    Weight of a mention's ordinal position (1 = first mentioned).

    Decreases monotonically: 1.0, 0.667, 0.5, 0.4, ...
    Unknown positions are weighted like position 3.
    """
    if position is None or position < 1:
        position = DEFAULT_POSITION
    return 1.0 / (1.0 + 0.5 * (position - 1))


def sentiment_weight(sentiment: Sentiment) -> float:
    return SENTIMENT_WEIGHTS[sentiment]


@dataclass
class _PairHit:
    """Best observation of one subject in one (prompt, provider) pair."""
    position: Optional[int]
    sentiment: Sentiment

    @property
    def score(self) -> float:
        return position_weight(self.position) * sentiment_weight(self.sentiment)


def _better_position(current: Optional[int], candidate: Optional[int]) -> Optional[int]:
    if current is None:
        return candidate
    if candidate is None:
        return current
    return min(current, candidate)


class RankingEngine:
    """
    Scores subjects and produces the ranking.

    Usage:
        engine = RankingEngine()
        rankings = engine.rank(company, competitors, mentions, responses)
        visibility = rankings_score(rankings, company)
    """

    def rank(
        self,
        company: Company,
        competitors: List[Competitor],
        mentions: List[Mention],
        responses: List[ProviderResponse],
    ) -> List[RankingEntry]:
        """
        Rank the company and every competitor.

        Args:
            company: Company under analysis (always ranked, even at score 0)
            competitors: Frozen competitor set
            mentions: All extracted mentions
            responses: All provider responses (defines the pair count)

        Returns:
            RankingEntry list in rank order, ranks 1..N
        """
        subjects: List[Tuple[str, SubjectType]] = [(company.name, SubjectType.COMPANY)]
        subjects.extend((c.name, SubjectType.COMPETITOR) for c in competitors)

        pairs = {(r.prompt_id, r.provider_id) for r in responses}
        provider_pairs = Counter(r.provider_id for r in responses)
        total_pairs = len(pairs)

        # subject -> (prompt_id, provider_id) -> best hit
        hits: Dict[str, Dict[Tuple[str, str], _PairHit]] = defaultdict(dict)
        by_subject: Dict[str, List[Mention]] = defaultdict(list)

        for mention in sorted(mentions, key=lambda m: (m.prompt_id, m.provider_id, m.offset)):
            by_subject[mention.subject].append(mention)
            key = (mention.prompt_id, mention.provider_id)
            hit = hits[mention.subject].get(key)
            if hit is None:
                hits[mention.subject][key] = _PairHit(mention.position, mention.sentiment)
            else:
                hit.position = _better_position(hit.position, mention.position)

        total_mentions = len(mentions)
        entries: List[RankingEntry] = []

        for name, subject_type in subjects:
            subject_hits = hits.get(name, {})
            subject_mentions = by_subject.get(name, [])

            raw = sum(hit.score for hit in subject_hits.values())
            score = round(100.0 * raw / total_pairs, 2) if total_pairs else 0.0

            provider_raw: Dict[str, float] = defaultdict(float)
            for (_, provider_id), hit in subject_hits.items():
                provider_raw[provider_id] += hit.score
            provider_scores = {
                provider_id: round(100.0 * provider_raw.get(provider_id, 0.0) / count, 2)
                for provider_id, count in sorted(provider_pairs.items())
            }

            positions = [h.position for h in subject_hits.values() if h.position is not None]
            average_position = round(sum(positions) / len(positions), 2) if positions else None

            sentiment_counts = {s.value: 0 for s in Sentiment}
            for mention in subject_mentions:
                sentiment_counts[mention.sentiment.value] += 1

            entries.append(RankingEntry(
                subject=name,
                subject_type=subject_type,
                score=score,
                mention_count=len(subject_mentions),
                average_position=average_position,
                sentiment_counts=sentiment_counts,
                provider_scores=provider_scores,
                share_of_voice=(
                    round(100.0 * len(subject_mentions) / total_mentions, 2)
                    if total_mentions else 0.0
                ),
            ))

        entries.sort(key=lambda e: (-e.score, -e.mention_count, e.subject.lower(), e.subject))
        for rank, entry in enumerate(entries, start=1):
            entry.rank = rank

        if entries:
            logger.info(
                f"Ranked {len(entries)} subjects over {total_pairs} pairs; "
                f"leader: {entries[0].subject} ({entries[0].score})"
            )
        return entries


def rankings_score(rankings: List[RankingEntry], company: Company) -> float:
    """The company's visibility score from a ranking."""
    for entry in rankings:
        if entry.subject_type == SubjectType.COMPANY and entry.subject == company.name:
            return entry.score
    return 0.0
