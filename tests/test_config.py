"""Tests for configuration loading."""

from datetime import timedelta
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

import pytest

from focus_monitor.config import DEFAULT_USER_PROMPT, get_settings
from focus_monitor.core import MonitoringFrequency


def write_config(tmpdir: str, text: str) -> Path:
    path = Path(tmpdir) / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_config_file() -> None:
    """Test defaults apply when no config file exists."""
    with TemporaryDirectory() as tmpdir, patch.dict("os.environ", {}, clear=True):
        settings = get_settings(Path(tmpdir) / "missing.yaml")

    assert settings.classifier_api_key == ""
    assert settings.fetcher.timeout == 10.0
    assert settings.extraction.max_content_length == 50000
    assert settings.scheduler.concurrency == 5
    assert settings.storage_dir == Path("data")
    assert settings.prompts.classification["user"] == DEFAULT_USER_PROMPT
    assert settings.frequency_intervals == {
        MonitoringFrequency.HOURLY: timedelta(hours=1),
        MonitoringFrequency.DAILY: timedelta(days=1),
        MonitoringFrequency.WEEKLY: timedelta(days=7),
    }


def test_yaml_overrides_and_env() -> None:
    """Test YAML values override defaults and secrets come from the environment."""
    env = {"AIML_API_KEY": "secret", "FOCUS_MONITOR_STORAGE_DIR": "/var/lib/focus"}
    with TemporaryDirectory() as tmpdir, patch.dict("os.environ", env, clear=True):
        path = write_config(
            tmpdir,
            """
fetcher:
  timeout: 5
classifier:
  model: custom-model
scheduler:
  concurrency: 2
  frequency_intervals:
    hourly: 600
storage:
  storage_dir: ./elsewhere
""",
        )
        settings = get_settings(path)

    assert settings.classifier_api_key == "secret"
    assert settings.fetcher.timeout == 5
    assert settings.classifier.model == "custom-model"
    assert settings.scheduler.concurrency == 2
    assert settings.frequency_intervals[MonitoringFrequency.HOURLY] == timedelta(minutes=10)
    assert settings.frequency_intervals[MonitoringFrequency.DAILY] == timedelta(days=1)
    assert settings.storage_dir == Path("/var/lib/focus")


@pytest.mark.parametrize(
    "text,message",
    [
        ("fetcher:\n  timeot: 5\n", "Unknown option 'timeot'"),
        ("notifications:\n  slack: true\n", "Unknown config section"),
        ("scheduler:\n  frequency_intervals:\n    monthly: 10\n", "Unknown monitoring frequency"),
        ("scheduler:\n  frequency_intervals:\n    daily: 0\n", "must be positive"),
        ("fetcher: 5\n", "must be a mapping"),
        ("prompts:\n  classification:\n    user: hi\n", "must define 'system' and 'user'"),
        ("scheduler:\n  concurrency: five\n", "'scheduler.concurrency' must be an integer"),
        ("scheduler:\n  concurrency: 2.5\n", "'scheduler.concurrency' must be an integer"),
        ("fetcher:\n  timeout: fast\n", "'fetcher.timeout' must be a number"),
        ("fetcher:\n  timeout: [1, 2]\n", "'fetcher.timeout' must be a number"),
        ("classifier:\n  model:\n", "'classifier.model' cannot be empty"),
        ("scheduler:\n  frequency_intervals: hourly\n", "must be a mapping"),
        ("scheduler:\n  frequency_intervals:\n    daily: soon\n", "must be a number of seconds"),
    ],
)
def test_invalid_config_rejected(text: str, message: str) -> None:
    """Test configuration mistakes are reported instead of ignored."""
    with TemporaryDirectory() as tmpdir:
        path = write_config(tmpdir, text)
        with pytest.raises(ValueError, match=message):
            get_settings(path)


def test_numeric_options_coerced_to_default_type() -> None:
    """Test quoted numbers and whole floats load as the option's own type."""
    text = (
        "fetcher:\n  timeout: 5\n  max_redirects: 3.0\n"
        "scheduler:\n  concurrency: \"4\"\n  tick_interval: \"30\"\n"
        "classifier:\n  model: 7\n"
    )
    with TemporaryDirectory() as tmpdir:
        settings = get_settings(write_config(tmpdir, text))

    assert settings.scheduler.concurrency == 4
    assert isinstance(settings.scheduler.concurrency, int)
    assert settings.scheduler.tick_interval == 30.0
    assert isinstance(settings.fetcher.timeout, float)
    assert settings.fetcher.max_redirects == 3
    assert isinstance(settings.fetcher.max_redirects, int)
    assert settings.classifier.model == "7"
