from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds (the precision we persist)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """
    Fixed textual form used on disk: 2024-05-01T12:30:00.123Z
    """
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def new_document_id() -> str:
    return uuid.uuid4().hex


class DocumentSource(str, Enum):
    WEBSITE = "website"
    UPLOAD = "upload"
    MANUAL = "manual"


class DocumentMetadata(BaseModel):
    """
    Provenance of a stored document. Serialized with the camelCase keys
    (createdAt, fileType) used by the persisted knowledge base.
    """

    model_config = ConfigDict(populate_by_name=True)

    source: DocumentSource
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    url: Optional[str] = None
    file_type: Optional[str] = Field(default=None, alias="fileType")

    @field_validator("created_at")
    @classmethod
    def to_utc_millis(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        v = v.astimezone(timezone.utc)
        return v.replace(microsecond=v.microsecond // 1000 * 1000)

    @field_serializer("created_at")
    def serialize_created_at(self, v: datetime) -> str:
        return format_timestamp(v)


class Document(BaseModel):
    """
    One entry of the knowledge base. Owned exclusively by the KnowledgeBase.
    """

    id: str = Field(default_factory=new_document_id)
    title: str
    content: str
    embedding: List[float] = Field(default_factory=list)
    metadata: DocumentMetadata

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


@dataclass(frozen=True)
class SearchResult:
    document: Document
    similarity: float
    relevant_chunk: str


@dataclass(frozen=True)
class KnowledgeStats:
    total_documents: int
    by_source: Dict[DocumentSource, int]
    total_content_length: int


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    sources: List[Document] = Field(default_factory=list)


@dataclass
class ChatReply:
    response: str
    sources: List[Document] = field(default_factory=list)
