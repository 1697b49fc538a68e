"""
Brand Monitor Data Models

Shared types used across the analysis pipeline:
- Company / competitor / prompt inputs (frozen once a run starts)
- Provider identities and per-call responses
- Extracted mentions and the aggregated ranking
- Progress events streamed to the caller

Wire serialization (to_dict) uses camelCase keys, matching the
JSON consumed by the brand monitor frontend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .utils.domain import normalize_domain, normalize_name


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_timestamp(value: Any, field_name: str = "timestamp") -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp supplied by a client.

    Accepts a trailing "Z" on every supported Python version.

    Raises:
        ValidationError: The value is not an ISO-8601 string
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(
            f"Invalid {field_name}", {field_name: "Expected an ISO-8601 timestamp"}
        )

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(
            f"Invalid {field_name}", {field_name: "Expected an ISO-8601 timestamp"}
        ) from None


# =============================================================================
# ENUMS
# =============================================================================


class Stage(str, Enum):
    """Pipeline stages, declared in execution order."""
    INITIALIZING = "initializing"
    SCRAPING = "scraping"
    COMPETITOR_DISCOVERY = "competitor-discovery"
    PROMPT_GENERATION = "prompt-generation"
    QUERYING = "querying"
    EXTRACTING = "extracting"
    RANKING = "ranking"
    FINALIZING = "finalizing"

    @property
    def order(self) -> int:
        """Position of the stage in the pipeline."""
        return list(Stage).index(self)


class EventType(str, Enum):
    """Progress event types."""
    STATUS = "status"
    PROVIDER_RESULT = "provider-result"
    ERROR = "error"
    COMPLETE = "complete"

    @property
    def is_terminal(self) -> bool:
        return self in (EventType.ERROR, EventType.COMPLETE)


class CompetitorSource(str, Enum):
    """Where a competitor entry came from."""
    USER_PROVIDED = "user-provided"
    DISCOVERED = "discovered"


class PromptOrigin(str, Enum):
    """Whether a prompt was generated from a template or supplied by the caller."""
    DEFAULT = "default"
    CUSTOM = "custom"


class ResponseStatus(str, Enum):
    """Terminal status of one provider call."""
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


class Sentiment(str, Enum):
    """Tone of a mention, from lexical cues around it."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class SubjectType(str, Enum):
    """Kind of subject a mention refers to."""
    COMPANY = "company"
    COMPETITOR = "competitor"


# =============================================================================
# COMPANY & COMPETITORS
# =============================================================================


@dataclass(frozen=True)
class CompanyInfo:
    """Normalized company metadata returned by the scraper."""
    name: str
    url: str
    description: str = ""
    industry: str = ""
    markets: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    scraped_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "description": self.description,
            "industry": self.industry,
            "markets": list(self.markets),
            "keywords": list(self.keywords),
            "scrapedAt": _iso(self.scraped_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompanyInfo":
        scraped_at = data.get("scrapedAt") or data.get("scraped_at")
        return cls(
            name=data.get("name", ""),
            url=data.get("url", ""),
            description=data.get("description") or "",
            industry=data.get("industry") or "",
            markets=list(data.get("markets") or []),
            keywords=list(data.get("keywords") or []),
            scraped_at=parse_timestamp(scraped_at, "scrapedAt"),
        )


@dataclass(frozen=True)
class Company:
    """The company under analysis. Immutable once the run starts."""
    name: str
    url: str
    normalized_domain: str
    description: Optional[str] = None
    industry: Optional[str] = None

    @classmethod
    def create(
        cls,
        name: str,
        url: str,
        description: Optional[str] = None,
        industry: Optional[str] = None,
    ) -> "Company":
        return cls(
            name=name.strip(),
            url=url.strip(),
            normalized_domain=normalize_domain(url),
            description=description or None,
            industry=industry or None,
        )

    def enrich(self, info: CompanyInfo) -> "Company":
        """Return a copy filled in with scraped metadata (caller data wins)."""
        return Company(
            name=self.name,
            url=self.url,
            normalized_domain=self.normalized_domain,
            description=self.description or info.description or None,
            industry=self.industry or info.industry or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "normalizedDomain": self.normalized_domain,
            "description": self.description,
            "industry": self.industry,
        }


@dataclass(frozen=True)
class Competitor:
    """A competitor tracked alongside the company."""
    name: str
    source: CompetitorSource

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "source": self.source.value}


# =============================================================================
# PROMPTS & PROVIDERS
# =============================================================================


@dataclass(frozen=True)
class Prompt:
    """An evaluation prompt sent to every provider."""
    id: str
    text: str
    origin: PromptOrigin

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "origin": self.origin.value}


@dataclass(frozen=True)
class ProviderIdentity:
    """A configured AI backend, stable for the duration of a run."""
    id: str
    display_name: str
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "displayName": self.display_name, "model": self.model}


@dataclass(frozen=True)
class ProviderResponse:
    """Outcome of one (provider, prompt) call."""
    provider_id: str
    prompt_id: str
    raw_text: str
    latency_ms: int
    status: ResponseStatus
    error_detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ResponseStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "providerId": self.provider_id,
            "promptId": self.prompt_id,
            "rawText": self.raw_text,
            "latencyMs": self.latency_ms,
            "status": self.status.value,
            "errorDetail": self.error_detail,
        }


# =============================================================================
# MENTIONS & RANKINGS
# =============================================================================


@dataclass(frozen=True)
class Mention:
    """A reference to the company or a competitor inside one provider response."""
    subject: str
    subject_type: SubjectType
    prompt_id: str
    provider_id: str
    position: Optional[int]
    sentiment: Sentiment
    confidence: float
    offset: int = 0
    snippet: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "subjectType": self.subject_type.value,
            "promptId": self.prompt_id,
            "providerId": self.provider_id,
            "position": self.position,
            "sentiment": self.sentiment.value,
            "confidence": self.confidence,
            "offset": self.offset,
            "snippet": self.snippet,
        }


@dataclass
class RankingEntry:
    """Aggregated visibility of one subject."""
    subject: str
    subject_type: SubjectType
    score: float
    rank: int = 0
    mention_count: int = 0
    average_position: Optional[float] = None
    sentiment_counts: Dict[str, int] = field(default_factory=dict)
    provider_scores: Dict[str, float] = field(default_factory=dict)
    share_of_voice: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "subjectType": self.subject_type.value,
            "score": self.score,
            "rank": self.rank,
            "mentionCount": self.mention_count,
            "averagePosition": self.average_position,
            "sentimentCounts": dict(self.sentiment_counts),
            "providerScores": dict(self.provider_scores),
            "shareOfVoice": self.share_of_voice,
        }


@dataclass
class AnalysisResult:
    """Final output of a completed analysis run."""
    company: Company
    competitors: List[Competitor]
    visibility_score: float
    rankings: List[RankingEntry]
    provider_responses: List[ProviderResponse]
    mentions: List[Mention]
    generated_at: datetime
    prompts: List[Prompt] = field(default_factory=list)
    providers: List[ProviderIdentity] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company": self.company.to_dict(),
            "competitors": [c.to_dict() for c in self.competitors],
            "visibilityScore": self.visibility_score,
            "rankings": [r.to_dict() for r in self.rankings],
            "providerResponses": [r.to_dict() for r in self.provider_responses],
            "mentions": [m.to_dict() for m in self.mentions],
            "generatedAt": _iso(self.generated_at),
            "prompts": [p.to_dict() for p in self.prompts],
            "providers": [p.to_dict() for p in self.providers],
        }


# =============================================================================
# PROGRESS EVENTS
# =============================================================================


@dataclass(frozen=True)
class ProgressEvent:
    """A progress event as delivered on the wire (one SSE chunk)."""
    type: EventType
    stage: Stage
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.type.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "stage": self.stage.value,
            "data": self.data,
            "timestamp": _iso(self.timestamp),
        }


# =============================================================================
# REQUEST
# =============================================================================


@dataclass
class AnalysisRequest:
    """
    Input of one analysis run (the StartAnalysis trigger).

    company_info, when supplied, is pre-scraped company data and makes
    the pipeline skip the scraping stage.
    """
    company_name: str
    company_url: str
    description: Optional[str] = None
    industry: Optional[str] = None
    company_info: Optional[CompanyInfo] = None
    custom_prompts: Optional[List[str]] = None
    user_selected_competitors: Optional[List[str]] = None
    use_web_search: bool = False

    @property
    def has_caller_company_data(self) -> bool:
        """Whether the caller described the company without a scrape."""
        return bool(self.company_info or self.description or self.industry)

    def validate(self) -> None:
        """Raise ValidationError if required company fields are missing or malformed."""
        fields = {}
        if not (self.company_name or "").strip():
            fields["name"] = "Company name is required"
        if not (self.company_url or "").strip():
            fields["url"] = "Company URL is required"
        if fields:
            raise ValidationError("Company name and URL are required", fields)

        if "." not in normalize_domain(self.company_url):
            raise ValidationError("Invalid URL format", {"url": "Please provide a valid URL"})

    def build_company(self) -> Company:
        return Company.create(
            name=self.company_name,
            url=self.company_url,
            description=self.description,
            industry=self.industry,
        )
