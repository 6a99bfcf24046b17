from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rag_chat.errors import FileTooLargeError
from rag_chat.extractors import extract_file
from rag_chat.http_client import HttpFetcher
from rag_chat.knowledge_base import KnowledgeBase
from rag_chat.models import DocumentSource
from rag_chat.scrape import MIN_CONTENT_CHARS, scrape_website

log = logging.getLogger("rag_chat.ingest")

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def ingest_manual(kb: KnowledgeBase, title: str, content: str) -> str:
    return kb.add(title, content, {"source": DocumentSource.MANUAL})


def ingest_website(
    kb: KnowledgeBase,
    fetcher: HttpFetcher,
    url: str,
    *,
    min_chars: int = MIN_CONTENT_CHARS,
) -> str:
    """
    Scrape `url` and store its text as a website document.
    Raises ScrapeError when the page cannot be fetched or is too thin.
    """
    page = scrape_website(fetcher, url, min_chars=min_chars)
    return kb.add_website_content(page.url, page.title, page.content)


def ingest_upload(
    kb: KnowledgeBase,
    file_name: str,
    data: bytes,
    *,
    mime_type: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> str:
    """
    Store uploaded bytes as an `upload` document titled with the file name.
    """
    if len(data) > max_bytes:
        raise FileTooLargeError(file_name, len(data), max_bytes)

    extracted = extract_file(file_name, data, mime_type)
    doc_id = kb.add(
        extracted.file_name,
        extracted.content,
        {"source": DocumentSource.UPLOAD, "file_type": extracted.mime_type},
    )
    log.info("Ingested %s as %s (%d chars)", file_name, extracted.file_format.value, len(extracted.content))
    return doc_id


def ingest_file(
    kb: KnowledgeBase,
    path: Path,
    *,
    mime_type: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> str:
    """
    Read a local file and ingest it. The size limit is checked before reading.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    size = path.stat().st_size
    if size > max_bytes:
        raise FileTooLargeError(path.name, size, max_bytes)

    return ingest_upload(kb, path.name, path.read_bytes(), mime_type=mime_type, max_bytes=max_bytes)
