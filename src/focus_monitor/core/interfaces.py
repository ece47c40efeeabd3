"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from focus_monitor.core.entities import (
    Category,
    ClassificationResult,
    FetchResponse,
    Summary,
    TrackedSite,
    UserFeedback,
)
from focus_monitor.core.site_state import CheckOutcome


class PageFetcher(ABC):
    """Interface for retrieving raw HTML."""

    @abstractmethod
    async def fetch(self, url: str) -> FetchResponse:
        """Fetch a page or raise a ``FetchError`` subclass."""
        pass


class ContentClassifier(ABC):
    """Interface for summarization and classification."""

    @abstractmethod
    async def classify(self, title: str, body: str, category: Category) -> ClassificationResult:
        """Summarize and classify content. Must not raise."""
        pass


class SiteStore(ABC):
    """Interface for tracked-site and summary persistence."""

    @abstractmethod
    async def get_due_sites(self, now: datetime) -> list[TrackedSite]:
        """Return active sites whose monitoring interval has elapsed."""
        pass

    @abstractmethod
    async def get_site(self, site_id: str) -> TrackedSite:
        """Return a site or raise ``UnknownSiteError``."""
        pass

    @abstractmethod
    async def update_site_stats(
        self, site_id: str, outcome: CheckOutcome, now: datetime
    ) -> TrackedSite:
        """Atomically apply one check outcome and return the stored site."""
        pass

    @abstractmethod
    async def save_summary(self, summary: Summary) -> str:
        """Insert a summary and return its id."""
        pass

    @abstractmethod
    async def add_site(self, site: TrackedSite) -> TrackedSite:
        pass

    @abstractmethod
    async def list_sites(self, user_id: Optional[str] = None) -> list[TrackedSite]:
        pass

    @abstractmethod
    async def remove_site(self, site_id: str) -> None:
        pass

    @abstractmethod
    async def list_summaries(self, site_id: Optional[str] = None) -> list[Summary]:
        pass

    @abstractmethod
    async def get_summary(self, summary_id: str) -> Summary:
        pass

    @abstractmethod
    async def mark_read(self, summary_id: str) -> Summary:
        pass

    @abstractmethod
    async def add_feedback(self, summary_id: str, feedback: UserFeedback) -> Summary:
        pass

    @abstractmethod
    async def archive(self, summary_id: str) -> Summary:
        pass
