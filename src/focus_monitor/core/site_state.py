"""Due predicate and check-outcome state transitions for tracked sites.

Everything here is pure: the transition functions take a site and an
outcome and return a new site, leaving persistence to the store.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Mapping, Optional, Union

from focus_monitor.core.entities import (
    LastError,
    MonitoringFrequency,
    SiteMetadata,
    SiteStatistics,
    TrackedSite,
)

DEFAULT_FREQUENCY_INTERVALS: dict[MonitoringFrequency, timedelta] = {
    MonitoringFrequency.HOURLY: timedelta(hours=1),
    MonitoringFrequency.DAILY: timedelta(days=1),
    MonitoringFrequency.WEEKLY: timedelta(days=7),
}


class CheckState(str, Enum):
    """Per-site state during a scheduler tick."""

    IDLE = "idle"
    DUE = "due"
    CHECKING = "checking"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class CheckFailed:
    message: str


@dataclass(frozen=True)
class CheckUnchanged:
    metadata: Optional[SiteMetadata] = None


@dataclass(frozen=True)
class CheckUpdated:
    content_hash: str
    metadata: Optional[SiteMetadata] = None


CheckOutcome = Union[CheckFailed, CheckUnchanged, CheckUpdated]


def outcome_state(outcome: CheckOutcome) -> CheckState:
    if isinstance(outcome, CheckFailed):
        return CheckState.FAILED
    if isinstance(outcome, CheckUpdated):
        return CheckState.UPDATED
    return CheckState.UNCHANGED


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def frequency_interval(
    frequency: MonitoringFrequency,
    intervals: Optional[Mapping[MonitoringFrequency, timedelta]] = None,
) -> timedelta:
    table = intervals or DEFAULT_FREQUENCY_INTERVALS
    return table.get(frequency, DEFAULT_FREQUENCY_INTERVALS[frequency])


def is_due(
    site: TrackedSite,
    now: datetime,
    intervals: Optional[Mapping[MonitoringFrequency, timedelta]] = None,
) -> bool:
    """Active and at least one frequency interval since the last check.

    A site that has never been checked is due immediately.
    """
    if not site.is_active:
        return False
    if site.last_checked is None:
        return True
    elapsed = _as_utc(now) - _as_utc(site.last_checked)
    return elapsed >= frequency_interval(site.monitoring_frequency, intervals)


def site_state(
    site: TrackedSite,
    now: datetime,
    intervals: Optional[Mapping[MonitoringFrequency, timedelta]] = None,
) -> CheckState:
    return CheckState.DUE if is_due(site, now, intervals) else CheckState.IDLE


def apply_outcome(site: TrackedSite, outcome: CheckOutcome, now: datetime) -> TrackedSite:
    """Return a copy of ``site`` with one check outcome applied.

    Every outcome counts one check and sets ``last_checked``. Only
    ``CheckUpdated`` touches the content hash; only ``CheckFailed`` touches
    ``last_error``. Successful outcomes carrying page metadata refresh the
    site's last-modified, length and word count; the language set at
    registration is kept.
    """
    stats = site.statistics
    if isinstance(outcome, CheckFailed):
        new_stats = SiteStatistics(
            total_checks=stats.total_checks + 1,
            successful_checks=stats.successful_checks,
            failed_checks=stats.failed_checks + 1,
            last_error=LastError(message=outcome.message, timestamp=now),
        )
        return replace(site, statistics=new_stats, last_checked=now)

    new_stats = SiteStatistics(
        total_checks=stats.total_checks + 1,
        successful_checks=stats.successful_checks + 1,
        failed_checks=stats.failed_checks,
        last_error=stats.last_error,
    )
    metadata = site.metadata
    if outcome.metadata is not None:
        metadata = replace(
            site.metadata,
            last_modified=outcome.metadata.last_modified,
            content_length=outcome.metadata.content_length,
            word_count=outcome.metadata.word_count,
        )
    if isinstance(outcome, CheckUpdated):
        return replace(
            site,
            statistics=new_stats,
            last_checked=now,
            last_content_hash=outcome.content_hash,
            metadata=metadata,
        )
    return replace(site, statistics=new_stats, last_checked=now, metadata=metadata)
