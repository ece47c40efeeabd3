"""Content extraction adapters."""

from focus_monitor.adapters.extraction.html_extractor import HtmlExtractor

__all__ = ["HtmlExtractor"]
