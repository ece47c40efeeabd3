"""HTML content extraction.

Turns raw HTML into a title and a normalized main-body text:

- noise regions (navigation, footers, ads, scripts, comments, overlays and
  any site-specific exclude selectors) are removed first,
- the title comes from the first matching title selector,
- the body comes from the first content container with substantial text,
  falling back to the whole document,
- the body is truncated to a configured maximum.

Extraction never raises; malformed markup degrades to best-effort text.
"""

import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Comment
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from focus_monitor.config import ExtractionConfig
from focus_monitor.core.entities import ExtractedContent, ExtractionRules, PageMetadata

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."
UNTITLED = "Untitled"

TITLE_SELECTORS = [
    "title",
    "h1",
    ".title",
    ".headline",
    ".post-title",
    ".entry-title",
    '[data-testid="title"]',
]

CONTENT_SELECTORS = [
    "article",
    ".content",
    ".post-content",
    ".entry-content",
    ".article-content",
    "main",
    ".main-content",
    ".story-body",
    ".post-body",
    '[data-testid="content"]',
]

# Subset of CONTENT_SELECTORS that marks a page as having a recognizable container.
MAIN_CONTENT_SELECTORS = ["article", ".content", ".post-content", ".entry-content", "main"]

NOISE_SELECTORS = [
    "nav",
    "header",
    "footer",
    ".navigation",
    ".nav",
    ".menu",
    ".sidebar",
    ".advertisement",
    ".ads",
    ".ad",
    ".social",
    ".share",
    ".comments",
    ".comment",
    ".related",
    ".recommended",
    "script",
    "style",
    "noscript",
    ".cookie",
    ".popup",
    ".modal",
    ".overlay",
]

DESCRIPTION_SELECTORS = [
    'meta[name="description"]',
    'meta[property="og:description"]',
    ".description",
    ".excerpt",
    ".summary",
]

FAVICON_SELECTORS = [
    'link[rel="icon"]',
    'link[rel="shortcut icon"]',
    'link[rel="apple-touch-icon"]',
    'link[rel="apple-touch-icon-precomposed"]',
]

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Collapse whitespace runs (blank lines included) to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def count_words(text: str) -> int:
    return len(text.split())


def _parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def _select(soup: BeautifulSoup, selector: str) -> list[Tag]:
    try:
        return soup.select(selector)
    except (SelectorSyntaxError, ValueError) as e:
        logger.debug("Skipping invalid selector %r: %s", selector, e)
        return []


def _select_one(soup: BeautifulSoup, selector: str) -> Optional[Tag]:
    matches = _select(soup, selector)
    return matches[0] if matches else None


class HtmlExtractor:
    """Extract title and main-body text from HTML."""

    def __init__(self, config: Optional[ExtractionConfig] = None) -> None:
        self.config = config or ExtractionConfig()

    def extract(
        self,
        html: str,
        rules: Optional[ExtractionRules] = None,
        last_modified: Optional[str] = None,
    ) -> ExtractedContent:
        """Extract content from a page.

        Word count is computed on the stored body, after truncation.
        """
        rules = rules or ExtractionRules()
        try:
            soup = _parse(html)
            self._remove_noise(soup, rules.exclude_selectors)
            title = self._extract_title(soup, rules.title_selectors)
            body = self._extract_body(soup, rules.content_selectors)
        except Exception as e:
            # lxml can still choke on pathological input; fall back to the raw text
            logger.warning("HTML parsing failed, using raw text: %s", e)
            title = UNTITLED
            body = clean_text(re.sub(r"<[^>]*>", " ", html or ""))

        truncated = False
        if len(body) > self.config.max_content_length:
            body = body[: self.config.max_content_length] + TRUNCATION_MARKER
            truncated = True

        return ExtractedContent(
            title=title,
            body=body,
            word_count=count_words(body),
            content_length=len(html or ""),
            truncated=truncated,
            last_modified=last_modified,
        )

    def has_main_content(self, html: str) -> bool:
        soup = _parse(html)
        return any(_select_one(soup, selector) is not None for selector in MAIN_CONTENT_SELECTORS)

    def extract_metadata(self, html: str, base_url: str) -> PageMetadata:
        """Extract title, description, favicon and language for a page."""
        soup = _parse(html)
        return PageMetadata(
            title=self._extract_title(soup, []),
            description=self._extract_description(soup),
            favicon=self._extract_favicon(soup, base_url),
            language=self._extract_language(soup),
        )

    def _remove_noise(self, soup: BeautifulSoup, exclude_selectors: list[str]) -> None:
        for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
            comment.extract()
        for selector in NOISE_SELECTORS + list(exclude_selectors):
            for element in _select(soup, selector):
                # nested matches are already gone with their ancestor
                if not element.decomposed:
                    element.decompose()

    def _extract_title(self, soup: BeautifulSoup, overrides: list[str]) -> str:
        for selector in TITLE_SELECTORS + list(overrides):
            element = _select_one(soup, selector)
            if element is None:
                continue
            title = clean_text(element.get_text(" "))
            if title and len(title) < self.config.max_title_length:
                return title
        return UNTITLED

    def _extract_body(self, soup: BeautifulSoup, overrides: list[str]) -> str:
        for selector in list(overrides) + CONTENT_SELECTORS:
            element = _select_one(soup, selector)
            if element is None:
                continue
            text = clean_text(element.get_text(" "))
            if len(text) > self.config.min_content_length:
                return text

        root = soup.body or soup
        return clean_text(root.get_text(" "))

    def _extract_description(self, soup: BeautifulSoup) -> str:
        for selector in DESCRIPTION_SELECTORS:
            element = _select_one(soup, selector)
            if element is None:
                continue
            desc = element.get("content") or element.get_text(" ")
            desc = clean_text(str(desc))
            if desc and len(desc) < 500:
                return desc
        return ""

    def _extract_favicon(self, soup: BeautifulSoup, base_url: str) -> Optional[str]:
        for selector in FAVICON_SELECTORS:
            element = _select_one(soup, selector)
            if element is not None and element.get("href"):
                return urljoin(base_url, str(element["href"]))

        parsed = urlparse(base_url)
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}/favicon.ico"
        return None

    def _extract_language(self, soup: BeautifulSoup) -> str:
        html_tag = soup.find("html")
        lang = html_tag.get("lang") if isinstance(html_tag, Tag) else None
        if not lang:
            meta = _select_one(soup, 'meta[http-equiv="content-language"]')
            lang = meta.get("content") if meta is not None else None
        return str(lang or "en").split("-")[0]
