"""
Text extraction for uploaded files.

Each supported format maps to one extraction function through EXTRACTORS.
Binary formats run an ordered chain of strategies: a real parser first, then a
printable-bytes heuristic. The last strategy's output is used even when it is
poor, and very short results are wrapped in an explanatory placeholder instead
of failing the upload.
"""

from __future__ import annotations

import io
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Callable, Dict, Optional, Sequence, Tuple

import pymupdf
from docx import Document as DocxDocument

from rag_chat.errors import DocumentValidationError, UnsupportedFormatError

log = logging.getLogger("rag_chat.extractors")

MIN_EXTRACTED_CHARS = 50

_PRINTABLE = re.compile(r"[a-zA-Z0-9\s.,!?;:()\-'\"]")
_WHITESPACE = re.compile(r"\s+")


class FileFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"
    PDF = "pdf"
    DOCX = "docx"
    DOC = "doc"
    UNSUPPORTED = "unsupported"


EXTENSION_FORMATS: Dict[str, FileFormat] = {
    ".txt": FileFormat.TEXT,
    ".json": FileFormat.JSON,
    ".md": FileFormat.MARKDOWN,
    ".markdown": FileFormat.MARKDOWN,
    ".pdf": FileFormat.PDF,
    ".doc": FileFormat.DOC,
    ".docx": FileFormat.DOCX,
}

MIME_FORMATS: Dict[str, FileFormat] = {
    "text/plain": FileFormat.TEXT,
    "application/json": FileFormat.JSON,
    "text/markdown": FileFormat.MARKDOWN,
    "text/x-markdown": FileFormat.MARKDOWN,
    "application/pdf": FileFormat.PDF,
    "application/msword": FileFormat.DOC,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FileFormat.DOCX,
}

FORMAT_MIME_TYPES: Dict[FileFormat, str] = {
    FileFormat.TEXT: "text/plain",
    FileFormat.JSON: "application/json",
    FileFormat.MARKDOWN: "text/markdown",
    FileFormat.PDF: "application/pdf",
    FileFormat.DOC: "application/msword",
    FileFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

ACCEPTED_EXTENSIONS: Tuple[str, ...] = tuple(EXTENSION_FORMATS)


@dataclass(frozen=True)
class ExtractedFile:
    file_name: str
    file_format: FileFormat
    mime_type: str
    content: str


def detect_format(file_name: str, mime_type: Optional[str] = None) -> FileFormat:
    """
    Extension first, then the declared MIME type (parameters such as
    `; charset=utf-8` are ignored).
    """
    suffix = PurePath(file_name).suffix.lower()
    if suffix in EXTENSION_FORMATS:
        return EXTENSION_FORMATS[suffix]

    if mime_type:
        base = mime_type.split(";", 1)[0].strip().lower()
        return MIME_FORMATS.get(base, FileFormat.UNSUPPORTED)

    return FileFormat.UNSUPPORTED


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _extract_text(file_name: str, data: bytes) -> str:
    return _decode(data)


def _extract_json(file_name: str, data: bytes) -> str:
    try:
        parsed = json.loads(_decode(data))
    except json.JSONDecodeError as e:
        raise DocumentValidationError(f"Invalid JSON in {file_name}: {e}") from e
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def printable_text(data: bytes, *, tag_breaks: bool = False) -> str:
    """
    Keep ASCII letters, digits, whitespace and basic punctuation from raw bytes.
    With `tag_breaks`, every "<" becomes a space so XML runs don't glue together.
    """
    chars = []
    for byte in data:
        char = chr(byte)
        if _PRINTABLE.match(char):
            chars.append(char)
        elif tag_breaks and char == "<":
            chars.append(" ")
    return _WHITESPACE.sub(" ", "".join(chars)).strip()


def _pdf_with_pymupdf(data: bytes) -> str:
    with pymupdf.open(stream=data, filetype="pdf") as pdf:
        pages = [page.get_text() for page in pdf]
    return _WHITESPACE.sub(" ", "\n".join(pages)).strip()


def _pdf_printable_bytes(data: bytes) -> str:
    return printable_text(data)


def _docx_with_python_docx(data: bytes) -> str:
    document = DocxDocument(io.BytesIO(data))
    paragraphs = [p.text for p in document.paragraphs if p.text.strip()]
    return "\n".join(paragraphs).strip()


def _docx_printable_bytes(data: bytes) -> str:
    return printable_text(data, tag_breaks=True)


Strategy = Tuple[str, Callable[[bytes], str]]

PDF_STRATEGIES: Sequence[Strategy] = (
    ("pymupdf", _pdf_with_pymupdf),
    ("printable-bytes", _pdf_printable_bytes),
)

DOCX_STRATEGIES: Sequence[Strategy] = (
    ("python-docx", _docx_with_python_docx),
    ("printable-bytes", _docx_printable_bytes),
)


def run_strategies(
    strategies: Sequence[Strategy],
    data: bytes,
    *,
    label: str,
    file_name: str,
) -> str:
    """
    Try each strategy in order and return the first result with at least
    MIN_EXTRACTED_CHARS characters. Otherwise the last strategy's output is
    used, wrapped in a note when it is short, or an error note when every
    strategy raised.
    """
    text: Optional[str] = None
    last_error: Optional[Exception] = None

    for name, strategy in strategies:
        try:
            text = strategy(data)
            last_error = None
        except Exception as e:
            log.warning("%s extraction via %s failed for %s: %s", label, name, file_name, e)
            text = None
            last_error = e
            continue

        if len(text) >= MIN_EXTRACTED_CHARS:
            log.debug("%s extraction via %s: %d chars from %s", label, name, len(text), file_name)
            return text

        log.info("%s extraction via %s returned only %d chars for %s", label, name, len(text), file_name)

    if text is None:
        return (
            f"{label}: {file_name}\n\n"
            f"Error: Could not extract text from this file ({last_error}). "
            "Please try converting it to a text file first."
        )

    log.warning("Using low-quality %s extraction for %s (%d chars)", label, file_name, len(text))
    return (
        f"{label}: {file_name}\n\n"
        "Note: Basic text extraction returned limited content. "
        "For better results, consider converting the file to plain text first.\n\n"
        f"Extracted text: {text}"
    )


def _extract_pdf(file_name: str, data: bytes) -> str:
    return run_strategies(PDF_STRATEGIES, data, label="PDF file", file_name=file_name)


def _extract_docx(file_name: str, data: bytes) -> str:
    return run_strategies(DOCX_STRATEGIES, data, label="Word document", file_name=file_name)


def _extract_doc(file_name: str, data: bytes) -> str:
    log.warning("Legacy .doc upload %s stored as a placeholder", file_name)
    return (
        f"Word document: {file_name}\n\n"
        "Note: Legacy .doc files require specialized parsing. "
        "Please save the document as .docx or .txt format for better text extraction."
    )


EXTRACTORS: Dict[FileFormat, Callable[[str, bytes], str]] = {
    FileFormat.TEXT: _extract_text,
    FileFormat.MARKDOWN: _extract_text,
    FileFormat.JSON: _extract_json,
    FileFormat.PDF: _extract_pdf,
    FileFormat.DOCX: _extract_docx,
    FileFormat.DOC: _extract_doc,
}


def extract_file(file_name: str, data: bytes, mime_type: Optional[str] = None) -> ExtractedFile:
    """
    Turn uploaded bytes into text. Raises UnsupportedFormatError for unknown types.
    """
    file_format = detect_format(file_name, mime_type)
    extractor = EXTRACTORS.get(file_format)
    if extractor is None:
        raise UnsupportedFormatError(file_name, ACCEPTED_EXTENSIONS)

    content = extractor(file_name, data)
    return ExtractedFile(
        file_name=file_name,
        file_format=file_format,
        mime_type=mime_type or FORMAT_MIME_TYPES[file_format],
        content=content,
    )
