"""Tests for core entities."""

from datetime import datetime, timezone

import pytest

from focus_monitor.core import (
    Category,
    ExtractionRules,
    MonitoringFrequency,
    SiteMetadata,
    SiteStatistics,
    TrackedSite,
    UserFeedback,
)
from focus_monitor.core.entities import LastError


def test_site_creation() -> None:
    """Test creating a valid site with defaults."""
    site = TrackedSite(id="site-1", user_id="user-1", url="https://example.com/news")

    assert site.category == Category.OTHER
    assert site.monitoring_frequency == MonitoringFrequency.DAILY
    assert site.is_active is True
    assert site.last_checked is None
    assert site.last_content_hash is None
    assert site.statistics.total_checks == 0


def test_site_validation() -> None:
    """Test site validation."""
    with pytest.raises(ValueError, match="Invalid site URL"):
        TrackedSite(id="site-1", user_id="user-1", url="ftp://example.com")

    with pytest.raises(ValueError, match="Site id cannot be empty"):
        TrackedSite(id="", user_id="user-1", url="https://example.com")

    with pytest.raises(ValueError):
        TrackedSite(id="site-1", user_id="user-1", url="https://example.com", category="gossip")


def test_site_accepts_string_enums() -> None:
    """Test enum fields are coerced from their string values."""
    site = TrackedSite(
        id="site-1",
        user_id="user-1",
        url="https://example.com",
        category="tech",
        monitoring_frequency="hourly",
    )

    assert site.category is Category.TECH
    assert site.monitoring_frequency is MonitoringFrequency.HOURLY


def test_site_dict_round_trip_preserves_state() -> None:
    """Test a site with monitoring state survives serialization."""
    checked = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    site = TrackedSite(
        id="site-1",
        user_id="user-1",
        url="https://example.com",
        category=Category.FINANCE,
        extraction_rules=ExtractionRules(content_selectors=["#story"], exclude_selectors=[".promo"]),
        last_checked=checked,
        last_content_hash="abc123",
        statistics=SiteStatistics(
            total_checks=3,
            successful_checks=2,
            failed_checks=1,
            last_error=LastError(message="Page not found", timestamp=checked),
        ),
    )

    restored = TrackedSite.from_dict(site.to_dict())

    assert restored == site


def test_site_metadata_round_trip() -> None:
    """Test description, favicon and page metadata survive serialization."""
    site = TrackedSite(
        id="site-1",
        user_id="user-1",
        url="https://example.com",
        title="Example News",
        description="Local news and weather",
        favicon="https://example.com/favicon.png",
        metadata=SiteMetadata(
            language="de",
            last_modified="Sun, 01 Jun 2025 10:00:00 GMT",
            content_length=5120,
            word_count=740,
        ),
    )

    data = site.to_dict()
    restored = TrackedSite.from_dict(data)

    assert data["metadata"]["word_count"] == 740
    assert restored == site
    assert restored.metadata.language == "de"


def test_site_from_dict_without_metadata() -> None:
    """Test records written before metadata existed load with defaults."""
    site = TrackedSite.from_dict({"id": "site-1", "user_id": "user-1", "url": "https://example.com"})

    assert site.description == ""
    assert site.favicon is None
    assert site.metadata == SiteMetadata(language="en")
    assert site.metadata.word_count is None


def test_site_description_truncated() -> None:
    """Test long descriptions are cut to 500 characters."""
    site = TrackedSite(id="site-1", user_id="user-1", url="https://example.com", description="x" * 800)

    assert len(site.description) == 500


def test_success_rate() -> None:
    """Test success rate percentage."""
    assert SiteStatistics().success_rate == 0.0
    assert SiteStatistics(total_checks=4, successful_checks=3, failed_checks=1).success_rate == 75.0


def test_feedback_rating_bounds() -> None:
    """Test feedback rating must be 1-5."""
    UserFeedback(rating=5, is_interested=True)
    with pytest.raises(ValueError, match="Rating"):
        UserFeedback(rating=0, is_interested=False)
