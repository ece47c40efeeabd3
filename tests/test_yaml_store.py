"""Tests for the YAML site store."""

import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Iterator

import pytest

from focus_monitor.adapters.storage import YamlSiteStore, new_site_id
from focus_monitor.core import (
    AIMetadata,
    CheckFailed,
    CheckUpdated,
    Classification,
    MonitoringFrequency,
    Summary,
    SummaryContent,
    TrackedSite,
    UserFeedback,
    WordCount,
)
from focus_monitor.core.errors import StoreError, StoreUnavailableError, UnknownSiteError

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def storage_dir() -> Iterator[Path]:
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(storage_dir: Path) -> YamlSiteStore:
    return YamlSiteStore(storage_dir)


def make_site(site_id: str = "site1", url: str = "https://example.com/news", **kwargs) -> TrackedSite:
    return TrackedSite(id=site_id, user_id="user-1", url=url, title="Example", **kwargs)


def make_summary(site_id: str = "site1", content_hash: str = "abc123", published_at: datetime = NOW) -> Summary:
    return Summary(
        user_id="user-1",
        website_id=site_id,
        original_url="https://example.com/news",
        title="Big news",
        content=SummaryContent(
            original="Full text of the big news",
            summary="Big news happened",
            key_points=["It happened"],
            word_count=WordCount(original=6, summary=3),
        ),
        classification=Classification(tags=["news"]),
        ai_metadata=AIMetadata(model="test-model", processing_time_ms=10, confidence=0.8),
        published_at=published_at,
        content_hash=content_hash,
    )


@pytest.mark.asyncio
async def test_add_and_get_site(store: YamlSiteStore, storage_dir: Path) -> None:
    """Test a site is persisted and read back."""
    site = make_site(monitoring_frequency=MonitoringFrequency.HOURLY)

    await store.add_site(site)
    loaded = await store.get_site("site1")

    assert loaded == site
    assert (storage_dir / "sites" / "site1.yaml").exists()


@pytest.mark.asyncio
async def test_add_site_rejects_duplicates(store: YamlSiteStore) -> None:
    """Test the same URL cannot be tracked twice by one user."""
    await store.add_site(make_site())

    with pytest.raises(StoreError, match="already tracked"):
        await store.add_site(make_site(site_id="site2"))
    with pytest.raises(StoreError, match="already exists"):
        await store.add_site(make_site(url="https://example.com/other"))

    # Another user may track the same URL
    other = TrackedSite(id="site3", user_id="user-2", url="https://example.com/news")
    await store.add_site(other)
    assert len(await store.list_sites()) == 2
    assert [s.id for s in await store.list_sites("user-2")] == ["site3"]


@pytest.mark.asyncio
async def test_unknown_and_removed_site(store: YamlSiteStore) -> None:
    """Test lookups of missing sites raise UnknownSiteError."""
    with pytest.raises(UnknownSiteError, match="Unknown site: nope"):
        await store.get_site("nope")

    await store.add_site(make_site())
    await store.remove_site("site1")

    with pytest.raises(UnknownSiteError):
        await store.get_site("site1")
    with pytest.raises(UnknownSiteError):
        await store.remove_site("site1")


@pytest.mark.asyncio
async def test_get_due_sites(store: YamlSiteStore) -> None:
    """Test only active, overdue or never-checked sites are due."""
    await store.add_site(make_site("fresh", "https://a.example", last_checked=NOW - timedelta(hours=23)))
    await store.add_site(make_site("stale", "https://b.example", last_checked=NOW - timedelta(hours=25)))
    await store.add_site(make_site("new", "https://c.example"))
    await store.add_site(make_site("paused", "https://d.example", is_active=False))

    due = await store.get_due_sites(NOW)

    assert sorted(s.id for s in due) == ["new", "stale"]


@pytest.mark.asyncio
async def test_corrupt_site_record_skipped(store: YamlSiteStore, storage_dir: Path) -> None:
    """Test an unreadable record does not hide the other sites."""
    await store.add_site(make_site())
    (storage_dir / "sites" / "broken.yaml").write_text("id: [unclosed", encoding="utf-8")

    assert [s.id for s in await store.list_sites()] == ["site1"]


@pytest.mark.asyncio
async def test_update_site_stats(store: YamlSiteStore) -> None:
    """Test outcomes are applied and persisted."""
    await store.add_site(make_site())

    await store.update_site_stats("site1", CheckUpdated("hash1"), NOW)
    updated = await store.update_site_stats("site1", CheckFailed("Request timeout"), NOW + timedelta(days=1))

    loaded = await store.get_site("site1")
    assert loaded == updated
    assert loaded.last_content_hash == "hash1"
    assert loaded.last_checked == NOW + timedelta(days=1)
    assert loaded.statistics.total_checks == 2
    assert loaded.statistics.successful_checks == 1
    assert loaded.statistics.failed_checks == 1
    assert loaded.statistics.last_error.message == "Request timeout"


@pytest.mark.asyncio
async def test_update_stats_unknown_site(store: YamlSiteStore) -> None:
    with pytest.raises(UnknownSiteError):
        await store.update_site_stats("ghost", CheckFailed("HTTP 500"), NOW)


@pytest.mark.asyncio
async def test_save_summary_idempotent(store: YamlSiteStore) -> None:
    """Test saving the same (site, hash) twice keeps one record."""
    first_id = await store.save_summary(make_summary())
    second_id = await store.save_summary(make_summary())

    assert first_id == second_id == "site1-abc123"
    summaries = await store.list_summaries("site1")
    assert len(summaries) == 1
    assert summaries[0].id == "site1-abc123"
    assert summaries[0].content.summary == "Big news happened"


@pytest.mark.asyncio
async def test_list_summaries_newest_first(store: YamlSiteStore) -> None:
    await store.save_summary(make_summary(content_hash="old", published_at=NOW - timedelta(days=2)))
    await store.save_summary(make_summary(content_hash="new", published_at=NOW))
    await store.save_summary(make_summary(site_id="site2", content_hash="mid", published_at=NOW - timedelta(days=1)))

    all_ids = [s.id for s in await store.list_summaries()]
    site_ids = [s.id for s in await store.list_summaries("site1")]

    assert all_ids == ["site1-new", "site2-mid", "site1-old"]
    assert site_ids == ["site1-new", "site1-old"]
    assert await store.list_summaries("unknown") == []


@pytest.mark.asyncio
async def test_summary_bookkeeping(store: YamlSiteStore) -> None:
    """Test read, feedback and archive flags persist."""
    summary_id = await store.save_summary(make_summary())

    await store.mark_read(summary_id)
    await store.add_feedback(summary_id, UserFeedback(rating=4, is_interested=True, feedback="Useful"))
    await store.archive(summary_id)

    summary = await store.get_summary(summary_id)
    assert summary.is_read is True
    assert summary.is_archived is True
    assert summary.user_feedback.rating == 4
    assert summary.user_feedback.feedback == "Useful"
    assert summary.user_feedback.feedback_timestamp is not None


@pytest.mark.asyncio
async def test_unknown_summary(store: YamlSiteStore) -> None:
    with pytest.raises(StoreError, match="Unknown summary"):
        await store.get_summary("site1-missing")
    with pytest.raises(StoreError, match="Malformed summary id"):
        await store.mark_read("nodash")


@pytest.mark.asyncio
async def test_store_unavailable(store: YamlSiteStore, storage_dir: Path) -> None:
    """Test a vanished storage directory is reported as unavailable."""
    shutil.rmtree(storage_dir / "sites")

    with pytest.raises(StoreUnavailableError):
        await store.get_due_sites(NOW)


def test_new_site_id_unique() -> None:
    assert new_site_id() != new_site_id()
