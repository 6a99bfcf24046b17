from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
from openai import OpenAIError

from rag_chat.config import Settings
from rag_chat.errors import EmbeddingRequestError
from rag_chat.models import Document
from rag_chat.tokenizer import token_list

log = logging.getLogger("rag_chat.scoring")


def lexical_similarity(query: str, text: str) -> float:
    """
    Share of query tokens (repeats counted) that also occur in `text`.
    0.0 when the query has no tokens.
    """
    query_tokens = token_list(query)
    if not query_tokens:
        return 0.0

    text_tokens = set(token_list(text))
    matches = sum(1 for token in query_tokens if token in text_tokens)
    return matches / len(query_tokens)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two equal-length vectors.
    Returns 0.0 when either vector has zero magnitude.
    """
    if len(a) != len(b):
        raise ValueError(
            f"Vectors must have the same length for cosine similarity ({len(a)} != {len(b)})"
        )

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


class TextEmbedder(Protocol):
    def embed_text(self, text: str) -> List[float]:
        ...


class Scorer(Protocol):
    """Ranks documents against a query. Implementations must be side-effect free."""

    name: str

    def score_all(self, query: str, documents: Sequence[Document]) -> List[Tuple[Document, float]]:
        ...

    def document_embedding(self, title: str, content: str) -> List[float]:
        ...


class LexicalScorer:
    name = "lexical"

    def score_all(self, query: str, documents: Sequence[Document]) -> List[Tuple[Document, float]]:
        return [(doc, lexical_similarity(query, doc.content)) for doc in documents]

    def document_embedding(self, title: str, content: str) -> List[float]:
        return []


class EmbeddingScorer:
    """
    Cosine similarity between the query embedding and each stored document
    embedding. Documents stored without an embedding, or with one of a different
    dimension than the query (e.g. after switching embedding models), are not ranked.
    """

    name = "embedding"

    def __init__(self, embedder: TextEmbedder) -> None:
        self._embedder = embedder

    def score_all(self, query: str, documents: Sequence[Document]) -> List[Tuple[Document, float]]:
        candidates = [doc for doc in documents if doc.embedding]
        if not candidates or not query.strip():
            return []

        query_vec = self._embed(query)
        scores = []
        for doc in candidates:
            if len(doc.embedding) != len(query_vec):
                log.warning(
                    "Skipping document %s: embedding has %d dimensions, query has %d",
                    doc.id,
                    len(doc.embedding),
                    len(query_vec),
                )
                continue
            scores.append((doc, cosine_similarity(query_vec, doc.embedding)))
        return scores

    def document_embedding(self, title: str, content: str) -> List[float]:
        return self._embed(f"{title}\n{content}")

    def _embed(self, text: str) -> List[float]:
        try:
            return list(self._embedder.embed_text(text))
        except OpenAIError as e:
            log.error("Embedding request failed: %s: %s", type(e).__name__, e)
            raise EmbeddingRequestError(f"Could not compute an embedding: {e}") from e


def build_scorer(settings: Settings, embedder: Optional[TextEmbedder] = None) -> Scorer:
    if settings.scorer == "embedding":
        if embedder is None:
            raise ValueError("The embedding scorer needs an embeddings client")
        log.debug("Using embedding scorer (%s)", settings.embedding_model)
        return EmbeddingScorer(embedder)

    return LexicalScorer()
