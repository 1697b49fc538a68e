"""
Mention Extraction

Parses a provider's free-text answer into structured mentions of the
company and its competitors.

Matching:
- Case-insensitive, word-bounded
- Tolerant of separators inside names ("Acme-Cloud" / "Acme Cloud")
- Tolerant of plural/possessive endings and legal suffixes ("Acme's", "Acme Inc")
- Overlapping matches resolve to the longest one

Each mention records the subject's ordinal position (order of first
appearance among all subjects in the response) and a sentiment read from
lexical cues in the surrounding clause.

extract_mentions() is pure: the same text and subjects always give the
same mentions.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from ..models import (
    Company,
    Competitor,
    Mention,
    ProviderResponse,
    Sentiment,
    SubjectType,
)
from ..utils.domain import strip_legal_suffix

logger = logging.getLogger(__name__)


# =============================================================================
# SENTIMENT LEXICON
# =============================================================================

POSITIVE_PATTERNS = re.compile(
    r"\b(recommend(?:ed|s)?|suggest(?:ed)?|best|top pick|top choice|ideal|excellent|"
    r"great|outstanding|leader|leading|popular|trusted|reliable|highly rated|"
    r"well.regarded|strong|robust|innovative|favorite|go.to|stands? out)\b",
    re.IGNORECASE,
)

NEGATIVE_PATTERNS = re.compile(
    r"\b(avoid|issues? with|problems? with|complaints?|drawbacks?|downsides?|"
    r"not recommend(?:ed)?|worse|worst|inferior|lacking|lacks|poor|expensive|"
    r"overpriced|unreliable|outdated|limited|weak|cautious|controvers(?:y|ial))\b",
    re.IGNORECASE,
)

# Clause boundaries: sentence punctuation followed by whitespace, or ; and newlines
_CLAUSE_BREAK = re.compile(r"[.!?](?=\s|$)|[;\n]")

_TOKEN = re.compile(r"[^\W_]+")
_SEPARATOR = r"[\s\-._'’&]{0,2}"
_ENDING = r"(?:'s|’s|es|s)?"

SNIPPET_RADIUS = 75

Subject = Tuple[str, SubjectType]


# =============================================================================
# MATCHING
# =============================================================================


def _variant_pattern(variant: str) -> Optional[re.Pattern]:
    tokens = _TOKEN.findall(variant)
    if not tokens:
        return None
    body = _SEPARATOR.join(re.escape(token) for token in tokens)
    return re.compile(r"(?<![^\W_])" + body + _ENDING + r"(?![^\W_])", re.IGNORECASE)


def _subject_patterns(name: str) -> List[re.Pattern]:
    """Patterns for a subject name and its legal-suffix-free form."""
    variants = [name.strip()]
    stripped = strip_legal_suffix(name)
    if stripped and stripped.lower() != variants[0].lower():
        variants.append(stripped)

    patterns = []
    for variant in variants:
        pattern = _variant_pattern(variant)
        if pattern is not None:
            patterns.append(pattern)
    return patterns


def _confidence(matched: str, name: str) -> float:
    """1.0 for an exact match, 0.9 ignoring case, 0.75 for a variant form."""
    if matched == name:
        return 1.0
    if matched.lower() == name.lower():
        return 0.9
    return 0.75


def _find_spans(text: str, subjects: Sequence[Subject]) -> List[Tuple[int, int, int, float]]:
    """
    Locate non-overlapping subject occurrences.

    Returns:
        (start, end, subject_index, confidence) tuples sorted by start
    """
    candidates = []
    for index, (name, _) in enumerate(subjects):
        name = name.strip()
        for pattern in _subject_patterns(name):
            for match in pattern.finditer(text):
                candidates.append(
                    (match.start(), match.end(), index, _confidence(match.group(0), name))
                )

    # Longest match first, then earliest, then first-listed subject
    candidates.sort(key=lambda c: (-(c[1] - c[0]), c[0], c[2]))

    accepted: List[Tuple[int, int, int, float]] = []
    for candidate in candidates:
        start, end = candidate[0], candidate[1]
        if any(start < a_end and a_start < end for a_start, a_end, _, _ in accepted):
            continue
        accepted.append(candidate)

    accepted.sort(key=lambda c: (c[0], c[2]))
    return accepted


# =============================================================================
# SENTIMENT
# =============================================================================


def _clause(text: str, start: int, end: int) -> str:
    """The clause of text containing the span [start, end)."""
    clause_start = 0
    for match in _CLAUSE_BREAK.finditer(text, 0, start):
        clause_start = match.end()

    following = _CLAUSE_BREAK.search(text, end)
    clause_end = following.start() if following else len(text)
    return text[clause_start:clause_end]


def classify_sentiment(context: str) -> Sentiment:
    """
    Classify the tone of a clause.

    Negative cues are counted first and removed, so "not recommended"
    does not also count as a recommendation.
    """
    negatives = len(NEGATIVE_PATTERNS.findall(context))
    positives = len(POSITIVE_PATTERNS.findall(NEGATIVE_PATTERNS.sub(" ", context)))

    if negatives > positives:
        return Sentiment.NEGATIVE
    if positives > negatives:
        return Sentiment.POSITIVE
    return Sentiment.NEUTRAL


def _snippet(text: str, start: int, end: int) -> str:
    return text[max(0, start - SNIPPET_RADIUS):min(len(text), end + SNIPPET_RADIUS)].strip()


# =============================================================================
# EXTRACTION
# =============================================================================


def extract_mentions(
    text: str,
    subjects: Sequence[Subject],
    prompt_id: str,
    provider_id: str,
) -> List[Mention]:
    """
    Extract every subject mention from one response text.

    Args:
        text: Raw provider answer
        subjects: (name, subject_type) pairs to look for
        prompt_id: Prompt the text answers
        provider_id: Provider that produced the text

    Returns:
        Mentions in order of appearance. Every occurrence is a mention;
        all occurrences of a subject share its first-mention position.
    """
    if not text or not subjects:
        return []

    spans = _find_spans(text, subjects)

    positions: Dict[int, int] = {}
    for _, _, index, _ in spans:
        if index not in positions:
            positions[index] = len(positions) + 1

    mentions = []
    for start, end, index, confidence in spans:
        name, subject_type = subjects[index]
        mentions.append(Mention(
            subject=name,
            subject_type=subject_type,
            prompt_id=prompt_id,
            provider_id=provider_id,
            position=positions[index],
            sentiment=classify_sentiment(_clause(text, start, end)),
            confidence=confidence,
            offset=start,
            snippet=_snippet(text, start, end),
        ))
    return mentions


class MentionExtractor:
    """
    Applies extract_mentions to provider responses for a fixed subject set.

    Usage:
        extractor = MentionExtractor(company, competitors)
        mentions = extractor.extract_all(responses)
    """

    def __init__(self, company: Company, competitors: List[Competitor]):
        self.subjects: List[Subject] = [(company.name, SubjectType.COMPANY)]
        self.subjects.extend((c.name, SubjectType.COMPETITOR) for c in competitors)

    def extract(self, response: ProviderResponse) -> List[Mention]:
        """Mentions in one response; non-ok responses contribute none."""
        if not response.ok:
            return []
        return extract_mentions(
            response.raw_text,
            self.subjects,
            prompt_id=response.prompt_id,
            provider_id=response.provider_id,
        )

    def extract_all(self, responses: List[ProviderResponse]) -> List[Mention]:
        mentions: List[Mention] = []
        for response in responses:
            mentions.extend(self.extract(response))

        logger.info(
            f"Extracted {len(mentions)} mentions from "
            f"{sum(1 for r in responses if r.ok)}/{len(responses)} successful responses"
        )
        return mentions
