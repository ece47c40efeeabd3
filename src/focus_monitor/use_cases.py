"""Business logic use cases."""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from focus_monitor.adapters.extraction.html_extractor import HtmlExtractor, count_words
from focus_monitor.adapters.storage import new_site_id
from focus_monitor.core import (
    Category,
    CheckFailed,
    CheckOutcome,
    CheckState,
    CheckUnchanged,
    CheckUpdated,
    ClassificationResult,
    ContentClassifier,
    ExtractedContent,
    MonitoringFrequency,
    PageFetcher,
    PageMetadata,
    SiteMetadata,
    SiteStatistics,
    SiteStore,
    Summary,
    SummaryContent,
    TrackedSite,
    WordCount,
    is_due,
)
from focus_monitor.core.change_detector import fingerprint, has_changed
from focus_monitor.core.entities import utcnow
from focus_monitor.core.errors import FetchError
from focus_monitor.core.site_state import outcome_state, site_state

logger = logging.getLogger(__name__)


@dataclass
class CheckReport:
    """Outcome of one site check."""

    site_id: str
    url: str
    state: CheckState
    checked_at: datetime
    summary_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class TickReport:
    """Aggregate of one scheduler pass. Results are ordered by check time."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    results: list[CheckReport] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    timed_out: list[str] = field(default_factory=list)

    def count(self, state: CheckState) -> int:
        return sum(1 for r in self.results if r.state == state)

    @property
    def updated(self) -> int:
        return self.count(CheckState.UPDATED)

    @property
    def unchanged(self) -> int:
        return self.count(CheckState.UNCHANGED)

    @property
    def failed(self) -> int:
        return self.count(CheckState.FAILED)


@dataclass
class ProbeResult:
    """One-off fetch of a URL without touching any stored state."""

    url: str
    success: bool
    status_code: int = 0
    title: Optional[str] = None
    has_content: bool = False
    content_length: int = 0
    word_count: int = 0
    last_modified: Optional[str] = None
    content_type: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SiteStatus:
    site_id: str
    state: CheckState
    is_active: bool
    last_checked: Optional[datetime]
    success_rate: float
    needs_monitoring: bool
    statistics: SiteStatistics


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def build_summary(
    site: TrackedSite,
    content: ExtractedContent,
    result: ClassificationResult,
    content_hash: str,
    published_at: datetime,
) -> Summary:
    """Assemble the persisted summary record for a detected change."""
    return Summary(
        user_id=site.user_id,
        website_id=site.id,
        original_url=site.url,
        title=content.title or site.title or site.url,
        content=SummaryContent(
            original=content.body,
            summary=result.summary,
            key_points=list(result.key_points),
            word_count=WordCount(
                original=content.word_count,
                summary=count_words(result.summary),
            ),
        ),
        classification=result.classification,
        ai_metadata=result.metadata,
        published_at=published_at,
        content_hash=content_hash,
    )


class MonitoringService:
    """Runs the fetch, extract, detect, classify and persist pipeline for tracked sites.

    At most one check per site id is in flight at any time; checks of
    different sites run concurrently up to ``concurrency``.
    """

    def __init__(
        self,
        store: SiteStore,
        fetcher: PageFetcher,
        classifier: ContentClassifier,
        extractor: Optional[HtmlExtractor] = None,
        concurrency: int = 5,
        frequency_intervals: Optional[Mapping[MonitoringFrequency, timedelta]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.classifier = classifier
        self.extractor = extractor or HtmlExtractor()
        self.frequency_intervals = frequency_intervals
        self.clock = clock
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        # Entries drop out once no check holds or waits on the lock
        self._site_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _site_lock(self, site_id: str) -> asyncio.Lock:
        return self._site_locks.setdefault(site_id, asyncio.Lock())

    def in_flight(self) -> set[str]:
        """Ids of sites with a check currently running."""
        return {site_id for site_id, lock in list(self._site_locks.items()) if lock.locked()}

    async def check_site(self, site_id: str) -> CheckReport:
        """Check one site now, regardless of its schedule.

        Waits for any in-flight check of the same site to finish first.
        Store errors propagate to the caller.
        """
        async with self._site_lock(site_id):
            site = await self.store.get_site(site_id)
            return await self._check(site)

    async def _check_if_due(self, site_id: str) -> Optional[CheckReport]:
        async with self._site_lock(site_id):
            # Reload under the site lock so the hash comparison sees the latest state
            site = await self.store.get_site(site_id)
            if not is_due(site, self.clock(), self.frequency_intervals):
                logger.debug("Site %s no longer due, skipping", site_id)
                return None
            return await self._check(site)

    async def _check(self, site: TrackedSite) -> CheckReport:
        now = self.clock()
        logger.debug("Site %s: %s", site.id, CheckState.CHECKING.value)
        async with self._semaphore:
            outcome, summary_id = await self._run_pipeline(site, now)

        await self.store.update_site_stats(site.id, outcome, now)

        state = outcome_state(outcome)
        error = outcome.message if isinstance(outcome, CheckFailed) else None
        logger.info("Checked %s (%s): %s", site.id, site.url, state.value)
        return CheckReport(
            site_id=site.id,
            url=site.url,
            state=state,
            checked_at=now,
            summary_id=summary_id,
            error=error,
        )

    async def _run_pipeline(
        self, site: TrackedSite, now: datetime
    ) -> tuple[CheckOutcome, Optional[str]]:
        """Fetch, extract, compare and, on change, classify and save a summary."""
        try:
            response = await self.fetcher.fetch(site.url)
        except FetchError as e:
            logger.warning("Fetch failed for %s (%s): %s", site.id, site.url, e)
            return CheckFailed(str(e)), None

        content = self.extractor.extract(
            response.body,
            rules=site.extraction_rules,
            last_modified=_header(response.headers, "last-modified"),
        )
        if content.truncated:
            logger.debug("Body of %s truncated to %d chars", site.id, len(content.body))
        metadata = SiteMetadata(
            language=site.metadata.language,
            last_modified=content.last_modified,
            content_length=content.content_length,
            word_count=content.word_count,
        )
        content_hash = fingerprint(content.body)

        if not has_changed(content_hash, site.last_content_hash):
            return CheckUnchanged(metadata), None

        result = await self.classifier.classify(content.title, content.body, site.category)
        summary = build_summary(site, content, result, content_hash, published_at=now)
        summary_id = await self.store.save_summary(summary)
        logger.info(
            "New content on %s: summary %s (%s, confidence %.1f)",
            site.id,
            summary_id,
            result.classification.tier.value,
            result.metadata.confidence,
        )
        return CheckUpdated(content_hash, metadata), summary_id

    async def run_tick(self, timeout: Optional[float] = None) -> TickReport:
        """Check every due site once.

        ``StoreUnavailableError`` from loading due sites propagates and aborts
        the tick. Errors inside one site's check are recorded in
        ``TickReport.errors`` without affecting the other sites. Checks still
        running after ``timeout`` seconds are cancelled.
        """
        report = TickReport(started_at=self.clock())
        due_sites = await self.store.get_due_sites(report.started_at)
        logger.info("Tick started: %d due site(s)", len(due_sites))

        tasks: dict[str, asyncio.Task] = {}
        for site in due_sites:
            if site.id in tasks or self._site_lock(site.id).locked():
                logger.info("Check already in flight for %s, skipping", site.id)
                report.skipped.append(site.id)
                continue
            tasks[site.id] = asyncio.create_task(self._check_if_due(site.id), name=f"check-{site.id}")

        pending: set[asyncio.Task] = set()
        if tasks:
            done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for site_id, task in tasks.items():
            if task in pending or task.cancelled():
                logger.warning("Check for %s cancelled by tick timeout", site_id)
                report.timed_out.append(site_id)
                continue
            exc = task.exception()
            if exc is not None:
                logger.error("Check for %s failed: %s", site_id, exc, exc_info=exc)
                report.errors[site_id] = str(exc)
                continue
            result = task.result()
            if result is None:
                report.skipped.append(site_id)
            else:
                report.results.append(result)

        report.results.sort(key=lambda r: r.checked_at)
        report.finished_at = self.clock()
        logger.info(
            "Tick finished: %d updated, %d unchanged, %d failed, %d errors, %d skipped, %d timed out",
            report.updated,
            report.unchanged,
            report.failed,
            len(report.errors),
            len(report.skipped),
            len(report.timed_out),
        )
        return report

    async def site_status(self, site_id: str) -> SiteStatus:
        site = await self.store.get_site(site_id)
        now = self.clock()
        if site_id in self.in_flight():
            state = CheckState.CHECKING
        else:
            state = site_state(site, now, self.frequency_intervals)
        return SiteStatus(
            site_id=site.id,
            state=state,
            is_active=site.is_active,
            last_checked=site.last_checked,
            success_rate=site.statistics.success_rate,
            needs_monitoring=is_due(site, now, self.frequency_intervals),
            statistics=site.statistics,
        )

    async def register_site(
        self,
        user_id: str,
        url: str,
        category: Category = Category.OTHER,
        frequency: MonitoringFrequency = MonitoringFrequency.DAILY,
        title: Optional[str] = None,
    ) -> TrackedSite:
        """Start tracking ``url`` for ``user_id``.

        The page is fetched once for its title, description, favicon and
        language. A fetch failure still registers the site, with placeholder
        metadata. An explicit ``title`` wins over the fetched one.
        """
        try:
            response = await self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning("Could not fetch metadata for %s: %s", url, e)
            page = PageMetadata(title="Unknown", description="", favicon=None, language="en")
            metadata = SiteMetadata()
        else:
            page = self.extractor.extract_metadata(response.body, url)
            content = self.extractor.extract(
                response.body, last_modified=_header(response.headers, "last-modified")
            )
            metadata = SiteMetadata(
                language=page.language,
                last_modified=content.last_modified,
                content_length=content.content_length,
                word_count=content.word_count,
            )

        site = TrackedSite(
            id=new_site_id(),
            user_id=user_id,
            url=url,
            title=title or page.title,
            description=page.description,
            favicon=page.favicon,
            category=category,
            monitoring_frequency=frequency,
            metadata=metadata,
            created_at=self.clock(),
        )
        return await self.store.add_site(site)

    async def probe_site(self, url: str) -> ProbeResult:
        """Fetch a URL once and report what extraction would see."""
        try:
            response = await self.fetcher.fetch(url)
        except FetchError as e:
            return ProbeResult(url=url, success=False, status_code=e.status_code or 0, error=str(e))

        content = self.extractor.extract(response.body)
        return ProbeResult(
            url=url,
            success=True,
            status_code=response.status_code,
            title=content.title,
            has_content=self.extractor.has_main_content(response.body),
            content_length=len(response.body),
            word_count=content.word_count,
            last_modified=_header(response.headers, "last-modified"),
            content_type=_header(response.headers, "content-type"),
        )
