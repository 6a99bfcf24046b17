"""
Persistence tests: snapshot format, round-trips and failure tolerance.
"""

import json
import re
from datetime import datetime, timezone

import pytest

from rag_chat.blob_store import (
    InMemoryBlobStore,
    JsonFileBlobStore,
    deserialize_documents,
    serialize_documents,
)
from rag_chat.knowledge_base import DEFAULT_STORAGE_KEY, KnowledgeBase
from rag_chat.models import Document, DocumentMetadata, DocumentSource

TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


class FailingBlobStore:
    def get(self, key):
        raise OSError("disk on fire")

    def set(self, key, value):
        raise OSError("disk on fire")


class TestSerialization:
    def test_snapshot_uses_camel_case_and_iso_timestamp(self):
        doc = Document(
            title="T",
            content="C",
            metadata=DocumentMetadata(source=DocumentSource.UPLOAD, file_type="text/plain"),
        )

        data = json.loads(serialize_documents([doc]))

        meta = data[0]["metadata"]
        assert meta["source"] == "upload"
        assert meta["fileType"] == "text/plain"
        assert TIMESTAMP_RE.match(meta["createdAt"])

    def test_round_trip_preserves_created_at(self):
        created = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)
        doc = Document(
            title="T",
            content="C",
            embedding=[0.5, 0.25],
            metadata=DocumentMetadata(source=DocumentSource.WEBSITE, created_at=created, url="https://x.org"),
        )

        blob = serialize_documents([doc])
        restored = deserialize_documents(blob)[0]

        assert '"createdAt":"2024-05-01T12:30:15.123Z"' in blob
        assert restored.metadata.created_at == created
        assert restored == doc

    def test_created_at_truncated_to_milliseconds(self):
        meta = DocumentMetadata(
            source=DocumentSource.MANUAL,
            created_at=datetime(2024, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc),
        )
        assert meta.created_at.microsecond == 123000

    def test_reads_original_storage_format(self):
        blob = json.dumps([
            {
                "id": "lx3k2abc",
                "title": "Saved",
                "content": "Saved content",
                "metadata": {"source": "manual", "createdAt": "2024-02-03T04:05:06.789Z"},
            }
        ])

        doc = deserialize_documents(blob)[0]

        assert doc.id == "lx3k2abc"
        assert doc.embedding == []
        assert doc.metadata.created_at == datetime(2024, 2, 3, 4, 5, 6, 789000, tzinfo=timezone.utc)

    def test_malformed_blob_raises_value_error(self):
        with pytest.raises(ValueError):
            deserialize_documents("{not json")


class TestKnowledgeBasePersistence:
    def test_reload_reconstructs_documents(self, blob_store, sample_docs):
        kb = KnowledgeBase(blob_store)
        for title, content in sample_docs.items():
            kb.add(title, content, {"source": "manual"})

        reloaded = KnowledgeBase(blob_store)

        assert reloaded.get_all() == kb.get_all()
        for before, after in zip(kb.get_all(), reloaded.get_all()):
            assert after.metadata.created_at == before.metadata.created_at

    def test_every_mutation_persists(self, blob_store):
        kb = KnowledgeBase(blob_store)
        doc_id = kb.add("T", "content", {"source": "manual"})
        kb.update(doc_id, title="Renamed")

        assert KnowledgeBase(blob_store).get_by_id(doc_id).title == "Renamed"

        kb.remove(doc_id)
        assert KnowledgeBase(blob_store).count() == 0

    def test_corrupt_blob_loads_empty(self):
        store = InMemoryBlobStore({DEFAULT_STORAGE_KEY: "definitely not json"})

        kb = KnowledgeBase(store)

        assert kb.count() == 0

    def test_invalid_document_in_blob_loads_empty(self):
        store = InMemoryBlobStore({DEFAULT_STORAGE_KEY: json.dumps([{"title": "no metadata"}])})
        assert KnowledgeBase(store).count() == 0

    def test_storage_failure_is_not_fatal(self):
        kb = KnowledgeBase(FailingBlobStore())

        doc_id = kb.add("T", "content", {"source": "manual"})

        assert kb.get_by_id(doc_id) is not None

    def test_custom_storage_key(self, blob_store):
        kb = KnowledgeBase(blob_store, storage_key="other")
        kb.add("T", "content", {"source": "manual"})

        assert blob_store.get("other") is not None
        assert blob_store.get(DEFAULT_STORAGE_KEY) is None


class TestJsonFileBlobStore:
    def test_missing_file(self, tmp_path):
        assert JsonFileBlobStore(tmp_path / "kb.json").get("key") is None

    def test_set_and_get(self, tmp_path):
        path = tmp_path / "nested" / "kb.json"
        store = JsonFileBlobStore(path)

        store.set("a", "1")
        store.set("b", "2")

        assert store.get("a") == "1"
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1", "b": "2"}
        assert list(path.parent.glob("*.tmp")) == []

    def test_knowledge_base_round_trip_on_disk(self, tmp_path):
        path = tmp_path / "kb.json"
        kb = KnowledgeBase(JsonFileBlobStore(path))
        doc_id = kb.add("Disk", "stored on disk", {"source": "manual"})

        reloaded = KnowledgeBase(JsonFileBlobStore(path))

        assert reloaded.get_by_id(doc_id) == kb.get_by_id(doc_id)

    def test_corrupt_file_loads_empty_and_is_overwritten(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text("garbage{", encoding="utf-8")

        kb = KnowledgeBase(JsonFileBlobStore(path))
        assert kb.count() == 0

        kb.add("T", "content", {"source": "manual"})
        assert KnowledgeBase(JsonFileBlobStore(path)).count() == 1
