from __future__ import annotations

import logging
from typing import List, Optional

from openai import APIConnectionError, APITimeoutError, InternalServerError, OpenAI, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rag_chat.config import Settings

log = logging.getLogger("rag_chat.embeddings")

TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)


class EmbeddingsClient:
    """
    Thin, retry-safe wrapper for generating embeddings through Mistral's
    OpenAI-compatible endpoint.
    """

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        self._client = client or OpenAI(
            api_key=settings.require_api_key(),
            base_url=settings.mistral_base_url,
            timeout=settings.http_timeout_s,
        )
        self._model = settings.embedding_model

    @property
    def model(self) -> str:
        return self._model

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def embed_text(self, text: str) -> List[float]:
        """
        Generate a single embedding vector for the given text.
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        log.debug("Embedding text (%d chars)", len(text))

        resp = self._client.embeddings.create(
            model=self._model,
            input=[text],
        )

        try:
            return list(resp.data[0].embedding)
        except (AttributeError, IndexError, TypeError) as e:
            raise RuntimeError("Invalid embedding response") from e
