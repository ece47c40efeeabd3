"""Configuration management."""

import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import yaml

from focus_monitor.core.entities import MonitoringFrequency
from focus_monitor.core.site_state import DEFAULT_FREQUENCY_INTERVALS

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; FocusCircle/1.0; +https://focuscircle.com/bot)"

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert content summarizer and classifier. Your job is to create "
    "concise, informative summaries and classify content based on importance and relevance."
)

# Literal braces are doubled because the template goes through str.format.
DEFAULT_USER_PROMPT = """Please analyze the following content and provide a structured response in JSON format:

Title: {title}
Category: {category}
Content: {content}{truncation_note}

Please provide your response in the following JSON format:
{{
  "summary": "A concise 2-3 sentence summary of the main points",
  "keyPoints": ["Key point 1", "Key point 2", "Key point 3"],
  "classification": {{
    "tier": "tier1" or "tier2",
    "category": "{category}",
    "tags": ["tag1", "tag2", "tag3"],
    "sentiment": "positive", "negative", or "neutral",
    "urgency": "low", "medium", "high", or "critical"
  }},
  "reasoning": "Brief explanation of the classification decisions"
}}

Classification Guidelines:
- Tier 1 (Critical): Breaking news, major announcements, urgent updates, significant changes
- Tier 2 (Informational): Regular updates, minor news, background information, routine content
- Category: one of business, tech, finance, health, sports, entertainment, politics, science, other
- Sentiment: Overall tone of the content
- Urgency: How time-sensitive the information is
- Tags: Relevant keywords and topics (3-5 tags maximum)

Focus on accuracy and relevance. The summary should be informative but concise."""


@dataclass
class FetcherConfig:
    """Page fetch settings."""
    timeout: float = 10.0
    max_redirects: int = 5
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "en-US,en;q=0.5"


@dataclass
class ExtractionConfig:
    """Content extraction limits."""
    max_content_length: int = 50000
    min_content_length: int = 100
    max_title_length: int = 200


@dataclass
class ClassifierConfig:
    """Classifier API settings."""
    base_url: str = "https://api.aimlapi.com/v1"
    model: str = "mistralai/Mistral-7B-Instruct-v0.2"
    max_tokens: int = 1000
    temperature: float = 0.3
    timeout: float = 60.0
    max_retries: int = 3
    initial_retry_delay: float = 2.0
    request_delay: float = 0.0
    max_prompt_chars: int = 4000


@dataclass
class SchedulerConfig:
    """Scheduler settings. Intervals are in seconds."""
    concurrency: int = 5
    tick_interval: float = 300.0
    tick_timeout: float = 600.0
    frequency_intervals: dict = field(default_factory=lambda: {
        freq.value: interval.total_seconds()
        for freq, interval in DEFAULT_FREQUENCY_INTERVALS.items()
    })


@dataclass
class StorageConfig:
    """Storage settings."""
    storage_dir: Path = Path("data")


@dataclass
class PromptsConfig:
    """Prompts for the classifier."""
    classification: dict = field(default_factory=lambda: {
        "system": DEFAULT_SYSTEM_PROMPT,
        "user": DEFAULT_USER_PROMPT,
    })


@dataclass
class Settings:
    """Application settings."""

    # API Keys (from environment only)
    classifier_api_key: str = ""

    # Config sections
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    prompts: PromptsConfig = field(default_factory=PromptsConfig)

    @property
    def frequency_intervals(self) -> dict[MonitoringFrequency, timedelta]:
        return {
            MonitoringFrequency(name): timedelta(seconds=float(seconds))
            for name, seconds in self.scheduler.frequency_intervals.items()
        }

    @property
    def storage_dir(self) -> Path:
        return self.storage.storage_dir


_SECTIONS = ("fetcher", "extraction", "classifier", "scheduler", "storage", "prompts")


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _coerce(name: str, key: str, current: Any, value: Any) -> Any:
    """Convert a YAML value to the type of the option's default.

    Numeric strings are accepted for numeric options ("5" for an int).
    Anything that cannot be converted raises ``ValueError``.
    """
    where = f"'{name}.{key}'"
    if value is None:
        raise ValueError(f"Option {where} cannot be empty")

    if isinstance(current, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(f"Option {where} must be a number, got {value!r}")
        target = type(current)
        expected = "an integer" if target is int else "a number"
        try:
            if target is int and isinstance(value, float):
                if not value.is_integer():
                    raise ValueError
                return int(value)
            return target(value)
        except ValueError:
            raise ValueError(f"Option {where} must be {expected}, got {value!r}") from None

    if isinstance(current, Path):
        if not isinstance(value, (str, Path)):
            raise ValueError(f"Option {where} must be a path, got {value!r}")
        return Path(value)

    if isinstance(current, dict):
        if not isinstance(value, dict):
            raise ValueError(f"Option {where} must be a mapping")
        return value

    if isinstance(current, str):
        if isinstance(value, (dict, list)):
            raise ValueError(f"Option {where} must be a string, got {value!r}")
        return str(value)

    return value


def _apply_section(section: Any, name: str, values: dict) -> None:
    """Copy recognized keys onto a config section, rejecting unknown ones."""
    if not isinstance(values, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")

    known = {f.name for f in fields(section)}
    for key, value in values.items():
        if key not in known:
            raise ValueError(f"Unknown option '{key}' in config section '{name}'")
        setattr(section, key, _coerce(name, key, getattr(section, key), value))


def _validate_intervals(intervals: dict) -> dict:
    allowed = {freq.value for freq in MonitoringFrequency}
    merged = dict(SchedulerConfig().frequency_intervals)
    for name, seconds in intervals.items():
        if name not in allowed:
            raise ValueError(f"Unknown monitoring frequency '{name}'")
        try:
            seconds = float(seconds)
        except (TypeError, ValueError):
            raise ValueError(f"Interval for '{name}' must be a number of seconds") from None
        if seconds <= 0:
            raise ValueError(f"Interval for '{name}' must be positive")
        merged[name] = seconds
    return merged


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)

    unknown = set(config) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

    settings = Settings(classifier_api_key=os.getenv("AIML_API_KEY", ""))

    for name in _SECTIONS:
        if name in config:
            _apply_section(getattr(settings, name), name, config[name])

    settings.storage.storage_dir = Path(settings.storage.storage_dir)
    settings.scheduler.frequency_intervals = _validate_intervals(
        settings.scheduler.frequency_intervals
    )

    storage_override: Optional[str] = os.getenv("FOCUS_MONITOR_STORAGE_DIR")
    if storage_override:
        settings.storage.storage_dir = Path(storage_override)

    if "prompts" in config:
        prompts = settings.prompts.classification
        if not isinstance(prompts, dict) or not {"system", "user"} <= set(prompts):
            raise ValueError("prompts.classification must define 'system' and 'user'")

    return settings
