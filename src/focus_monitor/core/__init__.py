"""Core domain layer."""

from focus_monitor.core.entities import (
    AIMetadata,
    Category,
    Classification,
    ClassificationResult,
    ExtractedContent,
    ExtractionRules,
    FetchResponse,
    MonitoringFrequency,
    PageMetadata,
    Sentiment,
    SiteMetadata,
    SiteStatistics,
    Summary,
    SummaryContent,
    Tier,
    TrackedSite,
    Urgency,
    UserFeedback,
    WordCount,
)
from focus_monitor.core.interfaces import ContentClassifier, PageFetcher, SiteStore
from focus_monitor.core.site_state import (
    CheckFailed,
    CheckOutcome,
    CheckState,
    CheckUnchanged,
    CheckUpdated,
    apply_outcome,
    is_due,
)

__all__ = [
    "AIMetadata",
    "Category",
    "Classification",
    "ClassificationResult",
    "ExtractedContent",
    "ExtractionRules",
    "FetchResponse",
    "MonitoringFrequency",
    "PageMetadata",
    "Sentiment",
    "SiteMetadata",
    "SiteStatistics",
    "Summary",
    "SummaryContent",
    "Tier",
    "TrackedSite",
    "Urgency",
    "UserFeedback",
    "WordCount",
    "ContentClassifier",
    "PageFetcher",
    "SiteStore",
    "CheckFailed",
    "CheckOutcome",
    "CheckState",
    "CheckUnchanged",
    "CheckUpdated",
    "apply_outcome",
    "is_due",
]
