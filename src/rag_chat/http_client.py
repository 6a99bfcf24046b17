from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential


DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7",
}


@dataclass(frozen=True)
class FetchResult:
    final_url: str
    status_code: int
    content_type: Optional[str]
    html: Optional[str]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpFetcher:
    """
    Downloads pages for website ingestion (`scrape_website`, `rag-chat add-url`).

    Connection and timeout errors get up to three attempts in total; HTTP error
    statuses are returned as-is so the scraper can report them. Pass
    `transport` to serve responses from an `httpx.MockTransport` in tests.
    Close it, or use it as a context manager, once the ingest is done.
    """

    def __init__(
        self,
        timeout_s: float = 20.0,
        follow_redirects: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            headers=DEFAULT_HEADERS,
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=follow_redirects,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=6),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def fetch(self, url: str) -> FetchResult:
        """GET `url` (following redirects) and return the status, final URL and page text."""
        resp = self._client.get(url)
        content_type = resp.headers.get("content-type")
        html = resp.text if resp.text else None

        return FetchResult(
            final_url=str(resp.url),
            status_code=resp.status_code,
            content_type=content_type,
            html=html,
        )
