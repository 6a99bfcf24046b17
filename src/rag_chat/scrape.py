from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import httpx
import trafilatura
from bs4 import BeautifulSoup

from rag_chat.errors import ScrapeError
from rag_chat.http_client import HttpFetcher

log = logging.getLogger("rag_chat.scrape")

MIN_CONTENT_CHARS = 100
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ScrapedPage:
    url: str
    title: str
    content: str

    @property
    def chars(self) -> int:
        return len(self.content)


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _page_title(html: str, url: str) -> str:
    try:
        soup = BeautifulSoup(html, "lxml")
        if soup.title and soup.title.string and soup.title.string.strip():
            return soup.title.string.strip()
    except Exception as e:
        log.debug("Title extraction failed for %s: %s", url, e)
    return url


def _main_text_trafilatura(html: str) -> Optional[str]:
    extracted = trafilatura.extract(
        html,
        include_comments=False,
        include_tables=False,
        favor_precision=True,
        output_format="txt",
    )
    return _collapse(extracted) if extracted else None


def _all_text_soup(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    return _collapse(soup.get_text(" ")) or None


# Tried in order; the first one that yields enough text wins.
CONTENT_STRATEGIES: Sequence[Tuple[str, Callable[[str], Optional[str]]]] = (
    ("trafilatura", _main_text_trafilatura),
    ("markup-strip", _all_text_soup),
)


def extract_page(url: str, html: str, min_chars: int = MIN_CONTENT_CHARS) -> ScrapedPage:
    """
    Extract title and readable text from HTML.

    Raises ScrapeError when no strategy produces at least `min_chars` characters.
    """
    title = _page_title(html, url)

    best = ""
    for name, strategy in CONTENT_STRATEGIES:
        try:
            text = strategy(html) or ""
        except Exception as e:
            log.debug("Content strategy %s failed for %s: %s", name, url, e)
            continue

        if len(text) >= min_chars:
            log.debug("Content strategy %s extracted %d chars from %s", name, len(text), url)
            return ScrapedPage(url=url, title=title, content=text)
        if len(text) > len(best):
            best = text

    raise ScrapeError(
        f"Could not extract meaningful content from website {url} "
        f"({len(best)} chars, need at least {min_chars})"
    )


def scrape_website(fetcher: HttpFetcher, url: str, *, min_chars: int = MIN_CONTENT_CHARS) -> ScrapedPage:
    """
    Fetch `url` and extract its page. Network and HTTP failures become ScrapeError.
    """
    url = url.strip()
    if not url:
        raise ScrapeError("URL must not be empty")

    try:
        result = fetcher.fetch(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ScrapeError(f"Could not fetch {url}: {type(e).__name__}: {e}") from e

    if not result.ok:
        raise ScrapeError(f"Could not fetch {url}: HTTP {result.status_code}")
    if not result.html:
        raise ScrapeError(f"Empty response from {url}")

    page = extract_page(url, result.html, min_chars=min_chars)
    log.info("Scraped %s: %r (%d chars)", url, page.title, page.chars)
    return page
