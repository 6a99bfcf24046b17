from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from rag_chat.errors import ConfigError


def _project_root() -> Path:
    """
    Resolve project root assuming this file lives in: <root>/src/rag_chat/config.py
    """
    return Path(__file__).resolve().parents[2]


class Settings(BaseModel):
    # --- Only needed for chat / embeddings ---
    mistral_api_key: Optional[str] = Field(default=None, min_length=10, description="Mistral API key")

    # --- Optional / defaults ---
    mistral_base_url: str = Field(default="https://api.mistral.ai/v1")
    chat_model: str = Field(default="mistral-small")
    embedding_model: str = Field(default="mistral-embed")
    max_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    scorer: Literal["lexical", "embedding"] = "lexical"
    min_similarity: float = Field(default=0.1, ge=0.0, le=1.0)
    top_k: int = Field(default=3, gt=0)
    history_turns: int = Field(default=6, ge=0)

    store_file: Path = Field(default_factory=lambda: _project_root() / "data" / "knowledge_base.json")
    storage_key: str = Field(default="mistral_knowledge_base", min_length=1)
    seed_defaults: bool = True

    max_upload_mb: int = Field(default=10, gt=0)
    http_timeout_s: float = Field(default=20.0, gt=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def require_api_key(self) -> str:
        if not self.mistral_api_key:
            raise ConfigError(
                "No API key found. Set MISTRAL_API_KEY in the environment or in the .env file."
            )
        return self.mistral_api_key


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Loads environment variables (optionally from .env) and validates Settings.

    IMPORTANT:
    - Do NOT hardcode secrets here.
    - Only fill variables in .env.
    """
    if env_file is None:
        env_file = _project_root() / ".env"

    # Load .env if present; environment variables override .env by default
    if env_file.exists():
        load_dotenv(env_file, override=False)

    # Map environment variables -> Settings fields
    data = {
        "mistral_api_key": os.getenv("MISTRAL_API_KEY") or None,
        "mistral_base_url": os.getenv("MISTRAL_BASE_URL", "https://api.mistral.ai/v1"),
        "chat_model": os.getenv("MISTRAL_MODEL", "mistral-small"),
        "embedding_model": os.getenv("MISTRAL_EMBEDDING_MODEL", "mistral-embed"),
        "scorer": os.getenv("RAG_SCORER", "lexical"),
        "min_similarity": os.getenv("RAG_MIN_SIMILARITY", "0.1"),
        "top_k": os.getenv("RAG_TOP_K", "3"),
        "history_turns": os.getenv("RAG_HISTORY_TURNS", "6"),
        "store_file": os.getenv("RAG_STORE_FILE", str(_project_root() / "data" / "knowledge_base.json")),
        "storage_key": os.getenv("RAG_STORAGE_KEY", "mistral_knowledge_base"),
        "seed_defaults": os.getenv("RAG_SEED_DEFAULTS", "true"),
        "max_upload_mb": os.getenv("RAG_MAX_UPLOAD_MB", "10"),
        "http_timeout_s": os.getenv("HTTP_TIMEOUT_S", "20.0"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
    }

    try:
        settings = Settings(**data)
    except ValidationError as e:
        raise ConfigError(
            "Invalid configuration. Check the MISTRAL_* / RAG_* environment variables.\n"
            f"Details:\n{e}"
        ) from e

    # Ensure the store directory exists (safe, idempotent)
    settings.store_file.parent.mkdir(parents=True, exist_ok=True)

    return settings
