"""
Shared fixtures: in-memory stores and fake network clients.
No test in this suite talks to the network.
"""

from typing import Dict, List

import pytest

from rag_chat.blob_store import InMemoryBlobStore
from rag_chat.knowledge_base import KnowledgeBase

ENV_VARS = (
    "MISTRAL_API_KEY",
    "MISTRAL_BASE_URL",
    "MISTRAL_MODEL",
    "MISTRAL_EMBEDDING_MODEL",
    "RAG_SCORER",
    "RAG_MIN_SIMILARITY",
    "RAG_TOP_K",
    "RAG_HISTORY_TURNS",
    "RAG_STORE_FILE",
    "RAG_STORAGE_KEY",
    "RAG_SEED_DEFAULTS",
    "RAG_MAX_UPLOAD_MB",
    "HTTP_TIMEOUT_S",
    "LOG_LEVEL",
)


class KeywordEmbedder:
    """
    Deterministic stand-in for the embeddings API: one axis per keyword.
    """

    KEYWORDS = ("python", "cooking", "music")

    def __init__(self) -> None:
        self.calls: List[str] = []

    def embed_text(self, text: str) -> List[float]:
        self.calls.append(text)
        lowered = text.lower()
        return [1.0 if kw in lowered else 0.0 for kw in self.KEYWORDS]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        # setenv first so monkeypatch also undoes values that load_dotenv writes later
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def kb(blob_store) -> KnowledgeBase:
    return KnowledgeBase(blob_store)


@pytest.fixture
def seeded_kb(blob_store) -> KnowledgeBase:
    store = KnowledgeBase(blob_store)
    store.seed_default_knowledge()
    return store


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def sample_docs() -> Dict[str, str]:
    return {
        "Python Basics": "Python is a programming language. Python code is readable.",
        "Cooking Pasta": "Boil water with salt. Cook the pasta for nine minutes.",
        "Music Theory": "A chord is three or more notes played together.",
    }
