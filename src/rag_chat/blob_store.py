from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from pydantic import TypeAdapter

from rag_chat.models import Document

_DOCUMENT_LIST = TypeAdapter(List[Document])


class BlobStore(Protocol):
    """Minimal key -> string storage, the shape of browser localStorage."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemoryBlobStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileBlobStore:
    """
    All keys live in a single JSON object on disk.
    Writes go to a temp file first and are moved into place with os.replace.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Blob file is not a JSON object: {self.path}")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except ValueError:
            # unreadable file: start over rather than refusing to save
            data = {}
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
                f.flush()
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def serialize_documents(documents: List[Document]) -> str:
    """
    JSON array of documents, camelCase metadata keys, createdAt as
    YYYY-MM-DDTHH:MM:SS.mmmZ.
    """
    return _DOCUMENT_LIST.dump_json(documents, by_alias=True).decode("utf-8")


def deserialize_documents(blob: str) -> List[Document]:
    """
    Raises ValueError (pydantic.ValidationError is one) on a malformed blob.
    """
    return _DOCUMENT_LIST.validate_json(blob)
