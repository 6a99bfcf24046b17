from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from rag_chat.blob_store import BlobStore, deserialize_documents, serialize_documents
from rag_chat.errors import DocumentNotFoundError, DocumentValidationError
from rag_chat.models import (
    Document,
    DocumentMetadata,
    DocumentSource,
    KnowledgeStats,
    SearchResult,
    utc_now,
)
from rag_chat.scoring import LexicalScorer, Scorer
from rag_chat.snippets import select_snippet

log = logging.getLogger("rag_chat.knowledge_base")

DEFAULT_STORAGE_KEY = "mistral_knowledge_base"
DEFAULT_MIN_SIMILARITY = 0.1
DEFAULT_TOP_K = 3

# Built-in manual documents added to an empty store (German, like the chat persona)
DEFAULT_KNOWLEDGE: Tuple[Tuple[str, str], ...] = (
    (
        "Mistral AI Information",
        "Mistral AI ist ein französisches KI-Unternehmen, das sich auf die Entwicklung von "
        "Large Language Models spezialisiert hat. Die Firma wurde 2023 gegründet und bietet "
        "verschiedene Modelle wie Mistral 7B, Mistral 8x7B und Mistral Large an. Mistral AI "
        "legt großen Wert auf offene und verantwortungsvolle KI-Entwicklung. Die Modelle sind "
        "für verschiedene Anwendungen optimiert, von Textgenerierung bis hin zu Code-Assistenz.",
    ),
    (
        "RAG (Retrieval-Augmented Generation)",
        "RAG ist eine Technik, die Large Language Models mit externen Wissensdatenbanken "
        "kombiniert. Dabei wird zuerst relevante Information aus einer Datenbank abgerufen und "
        "dann vom Sprachmodell zur Antwortgenerierung verwendet. Dies ermöglicht es, aktuelle "
        "und spezifische Informationen in die Antworten einzubeziehen, ohne das Modell neu zu "
        "trainieren. RAG verbessert die Faktentreue und reduziert Halluzinationen bei AI-Systemen.",
    ),
    (
        "Chatbot Development",
        "Ein Chatbot ist ein Computerprogramm, das menschliche Konversation simuliert. Moderne "
        "Chatbots nutzen Natural Language Processing und Machine Learning. Sie können in "
        "Customer Service, E-Commerce, Bildung und vielen anderen Bereichen eingesetzt werden. "
        "Wichtige Komponenten sind: Intent Recognition, Entity Extraction, Dialog Management und "
        "Response Generation.",
    ),
)


def _require_text(field_name: str, value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise DocumentValidationError(f"Invalid document data: {field_name} must not be empty")
    return value


class KnowledgeBase:
    """
    Ordered in-memory document collection persisted to a key-value blob.

    Every mutating call rewrites the full snapshot under `storage_key`.
    Persistence problems are logged and never abort the in-memory operation.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        scorer: Optional[Scorer] = None,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self._blob_store = blob_store
        self._scorer: Scorer = scorer or LexicalScorer()
        self._storage_key = storage_key
        self.min_similarity = min_similarity
        self.top_k = top_k
        self._documents: List[Document] = []
        self._load()

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            blob = self._blob_store.get(self._storage_key)
            self._documents = deserialize_documents(blob) if blob else []
        except (OSError, ValueError) as e:
            log.warning("Could not load knowledge base (%s); starting empty", e)
            self._documents = []
        else:
            log.debug("Loaded %d documents from storage", len(self._documents))

    def _save(self) -> None:
        try:
            self._blob_store.set(self._storage_key, serialize_documents(self._documents))
        except (OSError, ValueError, TypeError) as e:
            log.warning("Could not save knowledge base: %s", e)

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    def _check_embedding_dim(self, embedding: List[float]) -> None:
        if not embedding:
            return
        for doc in self._documents:
            if doc.embedding and len(doc.embedding) != len(embedding):
                raise DocumentValidationError(
                    f"Embedding dimension {len(embedding)} does not match "
                    f"the store's dimension {len(doc.embedding)}"
                )

    def add(self, title: str, content: str, metadata: Mapping[str, Any]) -> str:
        """
        Validate and store a new document, returning its generated id.

        `metadata` needs a `source` (website | upload | manual) and may carry
        `url` and `file_type`. Content is stored trimmed.
        """
        _require_text("title", title)
        _require_text("content", content)

        if not metadata or not metadata.get("source"):
            raise DocumentValidationError("Invalid document data: metadata.source is required")

        meta_input = {k: v for k, v in metadata.items() if k not in ("created_at", "createdAt")}
        try:
            meta = DocumentMetadata.model_validate({**meta_input, "created_at": utc_now()})
        except ValidationError as e:
            raise DocumentValidationError(f"Invalid document metadata: {e}") from e

        content = content.strip()
        embedding = self._scorer.document_embedding(title, content)
        self._check_embedding_dim(embedding)

        document = Document(title=title, content=content, embedding=embedding, metadata=meta)
        self._documents.append(document)
        self._save()

        log.info("Added document %s (%s, %d chars)", document.id, meta.source.value, len(content))
        return document.id

    def add_website_content(self, url: str, title: str, content: str) -> str:
        return self.add(title, content, {"source": DocumentSource.WEBSITE, "url": url})

    def update(self, doc_id: str, title: Optional[str] = None, content: Optional[str] = None) -> bool:
        """
        Replace title and/or content. Metadata and embedding are left as they are.
        Returns False when no document has `doc_id`.
        """
        document = self.get_by_id(doc_id)
        if document is None:
            return False

        new_title = document.title if title is None else _require_text("title", title)
        new_content = document.content if content is None else _require_text("content", content).strip()

        document.title = new_title
        document.content = new_content

        self._save()
        return True

    def remove(self, doc_id: str) -> bool:
        for index, doc in enumerate(self._documents):
            if doc.id == doc_id:
                del self._documents[index]
                self._save()
                log.info("Removed document %s", doc_id)
                return True
        return False

    def clear_all(self) -> None:
        self._documents = []
        self._save()
        log.info("Cleared knowledge base")

    def seed_default_knowledge(self) -> int:
        """Add the built-in manual documents when the store is empty."""
        if self._documents:
            return 0
        for title, content in DEFAULT_KNOWLEDGE:
            self.add(title, content, {"source": DocumentSource.MANUAL})
        return len(DEFAULT_KNOWLEDGE)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def search(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """
        Rank all documents against `query` with the configured scorer.

        Results below `min_similarity` are dropped, the rest are sorted by
        similarity (highest first, insertion order on ties) and cut to `top_k`.
        """
        limit = self.top_k if top_k is None else top_k
        if limit <= 0:
            return []

        scored = [
            (doc, similarity)
            for doc, similarity in self._scorer.score_all(query, self._documents)
            if similarity >= self.min_similarity
        ]
        # sorted() is stable, so equal scores keep insertion order
        ranked = sorted(scored, key=lambda pair: pair[1], reverse=True)[:limit]

        results = [
            SearchResult(
                document=doc,
                similarity=similarity,
                relevant_chunk=select_snippet(query, doc.content),
            )
            for doc, similarity in ranked
        ]
        log.debug("Search %r -> %d results", query, len(results))
        return results

    def get_all(self) -> List[Document]:
        return list(self._documents)

    def get_by_id(self, doc_id: str) -> Optional[Document]:
        for doc in self._documents:
            if doc.id == doc_id:
                return doc
        return None

    def require(self, doc_id: str) -> Document:
        document = self.get_by_id(doc_id)
        if document is None:
            raise DocumentNotFoundError(doc_id)
        return document

    def get_by_source(self, source: DocumentSource | str) -> List[Document]:
        source = DocumentSource(source)
        return [doc for doc in self._documents if doc.metadata.source == source]

    def count(self) -> int:
        return len(self._documents)

    def statistics(self) -> KnowledgeStats:
        by_source = {source: 0 for source in DocumentSource}
        total_chars = 0
        for doc in self._documents:
            by_source[doc.metadata.source] += 1
            total_chars += len(doc.content)

        return KnowledgeStats(
            total_documents=len(self._documents),
            by_source=by_source,
            total_content_length=total_chars,
        )
