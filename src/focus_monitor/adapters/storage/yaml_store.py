"""Tracked sites and summaries stored as individual YAML files.

Layout::

    <storage_dir>/sites/<site_id>.yaml
    <storage_dir>/summaries/<site_id>/<content_hash>.yaml

A summary id is ``<site_id>-<content_hash>``, so a second save of the same
(site, fingerprint) pair lands on the same file and returns the existing id.
"""

import asyncio
import logging
import os
import uuid
import weakref
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import yaml

from focus_monitor.core.entities import (
    MonitoringFrequency,
    Summary,
    TrackedSite,
    UserFeedback,
    utcnow,
)
from focus_monitor.core.errors import StoreError, StoreUnavailableError, UnknownSiteError
from focus_monitor.core.interfaces import SiteStore
from focus_monitor.core.site_state import CheckOutcome, apply_outcome, is_due

logger = logging.getLogger(__name__)


def new_site_id() -> str:
    return uuid.uuid4().hex


class YamlSiteStore(SiteStore):
    """File-backed store. Each record write is atomic (temp file + rename)."""

    def __init__(
        self,
        storage_dir: Path,
        frequency_intervals: Optional[dict[MonitoringFrequency, timedelta]] = None,
    ) -> None:
        self.storage_dir = Path(storage_dir)
        self.frequency_intervals = frequency_intervals
        # Entries drop out once no coroutine holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._ensure_structure()

    @property
    def sites_dir(self) -> Path:
        return self.storage_dir / "sites"

    @property
    def summaries_dir(self) -> Path:
        return self.storage_dir / "summaries"

    def _ensure_structure(self) -> None:
        """Create directory structure for records."""
        try:
            self.sites_dir.mkdir(parents=True, exist_ok=True)
            self.summaries_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot initialize storage at {self.storage_dir}: {e}") from e

    def _lock(self, key: str) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    # File helpers

    def _site_path(self, site_id: str) -> Path:
        return self.sites_dir / f"{site_id}.yaml"

    def _summary_path(self, summary_id: str) -> Path:
        site_id, sep, content_hash = summary_id.rpartition("-")
        if not sep or not site_id or not content_hash:
            raise StoreError(f"Malformed summary id: {summary_id}")
        return self.summaries_dir / site_id / f"{content_hash}.yaml"

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise StoreError(f"Cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise StoreError(f"Corrupt record {path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Corrupt record {path}: not a mapping")
        return data

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        tmp_path = path.with_suffix(".yaml.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, allow_unicode=True, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreError(f"Cannot write {path}: {e}") from e

    def _load_site(self, site_id: str) -> TrackedSite:
        path = self._site_path(site_id)
        if not path.exists():
            raise UnknownSiteError(site_id)
        try:
            return TrackedSite.from_dict(self._read(path))
        except (KeyError, ValueError, TypeError) as e:
            raise StoreError(f"Invalid site record {site_id}: {e}") from e

    def _iter_sites(self) -> list[TrackedSite]:
        if not self.sites_dir.is_dir():
            raise StoreUnavailableError(f"Storage directory missing: {self.sites_dir}")
        try:
            paths = sorted(self.sites_dir.glob("*.yaml"))
        except OSError as e:
            raise StoreUnavailableError(f"Cannot list sites: {e}") from e

        sites = []
        for path in paths:
            try:
                sites.append(TrackedSite.from_dict(self._read(path)))
            except (StoreError, KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping unreadable site record %s: %s", path.name, e)
        return sites

    def _load_summary(self, summary_id: str) -> Summary:
        path = self._summary_path(summary_id)
        if not path.exists():
            raise StoreError(f"Unknown summary: {summary_id}")
        try:
            return Summary.from_dict(self._read(path))
        except (KeyError, ValueError, TypeError) as e:
            raise StoreError(f"Invalid summary record {summary_id}: {e}") from e

    # Sites

    async def add_site(self, site: TrackedSite) -> TrackedSite:
        async with self._lock("registry"):
            for existing in self._iter_sites():
                if existing.id == site.id:
                    raise StoreError(f"Site id already exists: {site.id}")
                if existing.user_id == site.user_id and existing.url == site.url:
                    raise StoreError(f"URL already tracked for user {site.user_id}: {site.url}")
            self._write(self._site_path(site.id), site.to_dict())
        logger.info("Added site %s (%s)", site.id, site.url)
        return site

    async def get_site(self, site_id: str) -> TrackedSite:
        return self._load_site(site_id)

    async def list_sites(self, user_id: Optional[str] = None) -> list[TrackedSite]:
        sites = self._iter_sites()
        if user_id is not None:
            sites = [s for s in sites if s.user_id == user_id]
        return sites

    async def remove_site(self, site_id: str) -> None:
        async with self._lock(site_id):
            path = self._site_path(site_id)
            if not path.exists():
                raise UnknownSiteError(site_id)
            try:
                path.unlink()
            except OSError as e:
                raise StoreError(f"Cannot remove site {site_id}: {e}") from e

    async def get_due_sites(self, now: datetime) -> list[TrackedSite]:
        return [s for s in self._iter_sites() if is_due(s, now, self.frequency_intervals)]

    async def update_site_stats(
        self, site_id: str, outcome: CheckOutcome, now: datetime
    ) -> TrackedSite:
        async with self._lock(site_id):
            site = self._load_site(site_id)
            updated = apply_outcome(site, outcome, now)
            self._write(self._site_path(site_id), updated.to_dict())
        return updated

    # Summaries

    async def save_summary(self, summary: Summary) -> str:
        summary_id = f"{summary.website_id}-{summary.content_hash}"
        path = self._summary_path(summary_id)
        async with self._lock(summary_id):
            if path.exists():
                logger.info("Summary %s already recorded, skipping insert", summary_id)
                return summary_id
            self._write(path, replace(summary, id=summary_id).to_dict())
        return summary_id

    async def list_summaries(self, site_id: Optional[str] = None) -> list[Summary]:
        if not self.summaries_dir.is_dir():
            raise StoreUnavailableError(f"Storage directory missing: {self.summaries_dir}")
        if site_id is not None:
            dirs = [self.summaries_dir / site_id]
        else:
            dirs = [d for d in self.summaries_dir.iterdir() if d.is_dir()]

        summaries = []
        for directory in dirs:
            if not directory.is_dir():
                continue
            for path in directory.glob("*.yaml"):
                try:
                    summaries.append(Summary.from_dict(self._read(path)))
                except (StoreError, KeyError, ValueError, TypeError) as e:
                    logger.warning("Skipping unreadable summary %s: %s", path, e)

        summaries.sort(key=lambda s: s.published_at, reverse=True)
        return summaries

    async def get_summary(self, summary_id: str) -> Summary:
        return self._load_summary(summary_id)

    async def _mutate_summary(self, summary_id: str, **changes: Any) -> Summary:
        async with self._lock(summary_id):
            summary = replace(self._load_summary(summary_id), **changes)
            self._write(self._summary_path(summary_id), summary.to_dict())
        return summary

    async def mark_read(self, summary_id: str) -> Summary:
        return await self._mutate_summary(summary_id, is_read=True)

    async def add_feedback(self, summary_id: str, feedback: UserFeedback) -> Summary:
        if feedback.feedback_timestamp is None:
            feedback = replace(feedback, feedback_timestamp=utcnow())
        return await self._mutate_summary(summary_id, user_feedback=feedback)

    async def archive(self, summary_id: str) -> Summary:
        return await self._mutate_summary(summary_id, is_archived=True)
