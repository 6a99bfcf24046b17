from __future__ import annotations

import logging
from typing import Dict, List, Optional

from openai import APIConnectionError, APITimeoutError, InternalServerError, OpenAI, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rag_chat.config import Settings

log = logging.getLogger("rag_chat.llm")

TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)

NO_ANSWER_TEXT = "Sorry, I could not generate a response."


class ChatClient:
    """
    Thin wrapper around the chat-completions endpoint of Mistral
    (OpenAI-compatible API). Constructed by the caller and passed in;
    there is no shared module-level instance.
    """

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        self._client = client or OpenAI(
            api_key=settings.require_api_key(),
            base_url=settings.mistral_base_url,
            timeout=settings.http_timeout_s,
        )
        self._model = settings.chat_model
        self._max_tokens = settings.max_tokens
        self._temperature = settings.temperature

    @property
    def model(self) -> str:
        return self._model

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def complete(self, messages: List[Dict[str, str]]) -> str:
        """
        Send the conversation and return the assistant's text.
        Retries on transient failures; other API errors propagate.
        """
        log.debug(
            "Sending %d messages to %s (%d chars)",
            len(messages),
            self._model,
            sum(len(m["content"]) for m in messages),
        )

        response = self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

        if not response.choices:
            log.warning("Completion contained no choices")
            return NO_ANSWER_TEXT

        content = response.choices[0].message.content
        if not isinstance(content, str) or not content.strip():
            log.warning("Completion contained no text")
            return NO_ANSWER_TEXT

        log.debug("Raw completion: %s", content)
        return content
