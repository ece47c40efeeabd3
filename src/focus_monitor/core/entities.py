"""Core domain entities."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

MAX_SITE_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
MAX_SUMMARY_TITLE_LENGTH = 300
MAX_SUMMARY_LENGTH = 2000
MAX_KEY_POINT_LENGTH = 200
MAX_TAGS = 5

_URL_RE = re.compile(r"^https?://.+")


class Category(str, Enum):
    """Closed set of content categories."""

    BUSINESS = "business"
    TECH = "tech"
    FINANCE = "finance"
    HEALTH = "health"
    SPORTS = "sports"
    ENTERTAINMENT = "entertainment"
    POLITICS = "politics"
    SCIENCE = "science"
    OTHER = "other"


class MonitoringFrequency(str, Enum):
    """How often a tracked site is checked."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class Tier(str, Enum):
    """Classifier-assigned priority."""

    TIER1 = "tier1"
    TIER2 = "tier2"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (or pass a datetime through), assuming UTC when naive."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ExtractionRules:
    """Per-site selector overrides applied on top of the default extraction selectors."""

    title_selectors: list[str] = field(default_factory=list)
    content_selectors: list[str] = field(default_factory=list)
    exclude_selectors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title_selectors": list(self.title_selectors),
            "content_selectors": list(self.content_selectors),
            "exclude_selectors": list(self.exclude_selectors),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ExtractionRules":
        data = data or {}
        return cls(
            title_selectors=list(data.get("title_selectors") or []),
            content_selectors=list(data.get("content_selectors") or []),
            exclude_selectors=list(data.get("exclude_selectors") or []),
        )


@dataclass
class LastError:
    message: str
    timestamp: datetime


@dataclass
class SiteStatistics:
    """Check counters. ``successful_checks + failed_checks == total_checks`` always holds."""

    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    last_error: Optional[LastError] = None

    @property
    def success_rate(self) -> float:
        """Percentage of successful checks (0 when never checked)."""
        if self.total_checks == 0:
            return 0.0
        return self.successful_checks / self.total_checks * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_checks": self.total_checks,
            "successful_checks": self.successful_checks,
            "failed_checks": self.failed_checks,
            "last_error": (
                {"message": self.last_error.message, "timestamp": _iso(self.last_error.timestamp)}
                if self.last_error
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SiteStatistics":
        data = data or {}
        last_error = data.get("last_error")
        return cls(
            total_checks=int(data.get("total_checks", 0)),
            successful_checks=int(data.get("successful_checks", 0)),
            failed_checks=int(data.get("failed_checks", 0)),
            last_error=(
                LastError(message=last_error["message"], timestamp=_parse_dt(last_error["timestamp"]))
                if last_error
                else None
            ),
        )


@dataclass
class SiteMetadata:
    """Page facts recorded at registration and refreshed by each successful check."""

    language: str = "en"
    last_modified: Optional[str] = None
    content_length: Optional[int] = None
    word_count: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "language": self.language,
            "last_modified": self.last_modified,
            "content_length": self.content_length,
            "word_count": self.word_count,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SiteMetadata":
        data = data or {}
        content_length = data.get("content_length")
        word_count = data.get("word_count")
        return cls(
            language=data.get("language") or "en",
            last_modified=data.get("last_modified"),
            content_length=int(content_length) if content_length is not None else None,
            word_count=int(word_count) if word_count is not None else None,
        )


@dataclass
class TrackedSite:
    """One monitored URL owned by a user."""

    id: str
    user_id: str
    url: str
    title: str = ""
    description: str = ""
    favicon: Optional[str] = None
    category: Category = Category.OTHER
    monitoring_frequency: MonitoringFrequency = MonitoringFrequency.DAILY
    is_active: bool = True
    extraction_rules: ExtractionRules = field(default_factory=ExtractionRules)
    metadata: SiteMetadata = field(default_factory=SiteMetadata)
    last_checked: Optional[datetime] = None
    last_content_hash: Optional[str] = None
    statistics: SiteStatistics = field(default_factory=SiteStatistics)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Site id cannot be empty")
        if not self.user_id:
            raise ValueError("User id cannot be empty")
        if not self.url or not _URL_RE.match(self.url):
            raise ValueError(f"Invalid site URL: {self.url!r}")
        if len(self.title) > MAX_SITE_TITLE_LENGTH:
            self.title = self.title[:MAX_SITE_TITLE_LENGTH]
        self.description = self.description[:MAX_DESCRIPTION_LENGTH]
        self.category = Category(self.category)
        self.monitoring_frequency = MonitoringFrequency(self.monitoring_frequency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "favicon": self.favicon,
            "category": self.category.value,
            "monitoring_frequency": self.monitoring_frequency.value,
            "is_active": self.is_active,
            "extraction_rules": self.extraction_rules.to_dict(),
            "metadata": self.metadata.to_dict(),
            "last_checked": _iso(self.last_checked),
            "last_content_hash": self.last_content_hash,
            "statistics": self.statistics.to_dict(),
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackedSite":
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            url=data["url"],
            title=data.get("title") or "",
            description=data.get("description") or "",
            favicon=data.get("favicon"),
            category=Category(data.get("category", Category.OTHER.value)),
            monitoring_frequency=MonitoringFrequency(
                data.get("monitoring_frequency", MonitoringFrequency.DAILY.value)
            ),
            is_active=bool(data.get("is_active", True)),
            extraction_rules=ExtractionRules.from_dict(data.get("extraction_rules")),
            metadata=SiteMetadata.from_dict(data.get("metadata")),
            last_checked=_parse_dt(data.get("last_checked")),
            last_content_hash=data.get("last_content_hash"),
            statistics=SiteStatistics.from_dict(data.get("statistics")),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
        )


@dataclass
class FetchResponse:
    """Raw HTTP response for a fetched page."""

    url: str
    status_code: int
    headers: dict[str, str]
    body: str


@dataclass
class ExtractedContent:
    """Normalized page content, produced fresh for every successful fetch."""

    title: str
    body: str
    word_count: int
    content_length: int
    truncated: bool = False
    last_modified: Optional[str] = None


@dataclass
class PageMetadata:
    title: str
    description: str
    favicon: Optional[str]
    language: str


@dataclass
class Classification:
    tier: Tier = Tier.TIER2
    category: Category = Category.OTHER
    tags: list[str] = field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    urgency: Urgency = Urgency.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "category": self.category.value,
            "tags": list(self.tags),
            "sentiment": self.sentiment.value,
            "urgency": self.urgency.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Classification":
        return cls(
            tier=Tier(data.get("tier", Tier.TIER2.value)),
            category=Category(data.get("category", Category.OTHER.value)),
            tags=list(data.get("tags") or []),
            sentiment=Sentiment(data.get("sentiment", Sentiment.NEUTRAL.value)),
            urgency=Urgency(data.get("urgency", Urgency.MEDIUM.value)),
        )


@dataclass
class AIMetadata:
    model: str
    processing_time_ms: int
    confidence: float
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "processing_time_ms": self.processing_time_ms,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AIMetadata":
        return cls(
            model=data.get("model", ""),
            processing_time_ms=int(data.get("processing_time_ms", 0)),
            confidence=float(data.get("confidence", 0.0)),
            reasoning=data.get("reasoning") or "",
        )


@dataclass
class ClassificationResult:
    """Classifier output. Always fully populated, even on fallback."""

    summary: str
    key_points: list[str]
    classification: Classification
    metadata: AIMetadata


@dataclass
class WordCount:
    original: int
    summary: int


@dataclass
class SummaryContent:
    original: str
    summary: str
    key_points: list[str]
    word_count: WordCount


@dataclass
class UserFeedback:
    rating: int
    is_interested: bool
    feedback: Optional[str] = None
    feedback_timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not 1 <= self.rating <= 5:
            raise ValueError("Rating must be between 1 and 5")


@dataclass
class Summary:
    """One unit of new content for a site. Created once by the pipeline."""

    user_id: str
    website_id: str
    original_url: str
    title: str
    content: SummaryContent
    classification: Classification
    ai_metadata: AIMetadata
    published_at: datetime
    content_hash: str
    id: Optional[str] = None
    user_feedback: Optional[UserFeedback] = None
    is_read: bool = False
    is_archived: bool = False
    extracted_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.title:
            raise ValueError("Title cannot be empty")
        if not self.original_url:
            raise ValueError("URL cannot be empty")
        self.title = self.title[:MAX_SUMMARY_TITLE_LENGTH]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "website_id": self.website_id,
            "original_url": self.original_url,
            "title": self.title,
            "content": {
                "original": self.content.original,
                "summary": self.content.summary,
                "key_points": list(self.content.key_points),
                "word_count": {
                    "original": self.content.word_count.original,
                    "summary": self.content.word_count.summary,
                },
            },
            "classification": self.classification.to_dict(),
            "ai_metadata": self.ai_metadata.to_dict(),
            "content_hash": self.content_hash,
            "user_feedback": (
                {
                    "rating": self.user_feedback.rating,
                    "is_interested": self.user_feedback.is_interested,
                    "feedback": self.user_feedback.feedback,
                    "feedback_timestamp": _iso(self.user_feedback.feedback_timestamp),
                }
                if self.user_feedback
                else None
            ),
            "is_read": self.is_read,
            "is_archived": self.is_archived,
            "published_at": _iso(self.published_at),
            "extracted_at": _iso(self.extracted_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Summary":
        content = data["content"]
        word_count = content.get("word_count") or {}
        feedback = data.get("user_feedback")
        return cls(
            id=data.get("id"),
            user_id=str(data["user_id"]),
            website_id=str(data["website_id"]),
            original_url=data["original_url"],
            title=data["title"],
            content=SummaryContent(
                original=content.get("original", ""),
                summary=content.get("summary", ""),
                key_points=list(content.get("key_points") or []),
                word_count=WordCount(
                    original=int(word_count.get("original", 0)),
                    summary=int(word_count.get("summary", 0)),
                ),
            ),
            classification=Classification.from_dict(data.get("classification") or {}),
            ai_metadata=AIMetadata.from_dict(data.get("ai_metadata") or {}),
            content_hash=data["content_hash"],
            user_feedback=(
                UserFeedback(
                    rating=int(feedback["rating"]),
                    is_interested=bool(feedback["is_interested"]),
                    feedback=feedback.get("feedback"),
                    feedback_timestamp=_parse_dt(feedback.get("feedback_timestamp")),
                )
                if feedback
                else None
            ),
            is_read=bool(data.get("is_read", False)),
            is_archived=bool(data.get("is_archived", False)),
            published_at=_parse_dt(data["published_at"]),
            extracted_at=_parse_dt(data.get("extracted_at")) or utcnow(),
        )
