from __future__ import annotations

from typing import Iterable


class RagChatError(Exception):
    """Base class for all errors raised by rag_chat."""


class ConfigError(RagChatError):
    """Settings are invalid or a required value (API key) is missing."""


class DocumentValidationError(RagChatError):
    """A document failed validation (empty title/content, bad source, ...)."""


class DocumentNotFoundError(RagChatError):
    def __init__(self, doc_id: str) -> None:
        super().__init__(f"Document not found: {doc_id}")
        self.doc_id = doc_id


class UnsupportedFormatError(RagChatError):
    def __init__(self, file_name: str, accepted: Iterable[str]) -> None:
        accepted_list = ", ".join(accepted)
        super().__init__(
            f"Unsupported file type: {file_name}. Supported formats: {accepted_list}"
        )
        self.file_name = file_name


class FileTooLargeError(RagChatError):
    def __init__(self, file_name: str, size: int, limit: int) -> None:
        super().__init__(
            f"File too large: {file_name} is {size} bytes (limit {limit} bytes)"
        )
        self.size = size
        self.limit = limit


class ScrapeError(RagChatError):
    """Website could not be fetched or yielded too little text."""


class ChatRequestError(RagChatError):
    """
    Completion request failed. `user_message` is safe to show to the end user;
    the underlying exception is chained as __cause__.
    """

    def __init__(self, user_message: str) -> None:
        super().__init__(user_message)
        self.user_message = user_message


class EmbeddingRequestError(RagChatError):
    """The embeddings API could not embed a query or document."""
