"""Page fetch adapters."""

from focus_monitor.adapters.fetch.http_fetcher import HttpFetcher

__all__ = ["HttpFetcher"]
