from __future__ import annotations

import logging
from typing import Dict, List, Protocol, Sequence

from openai import OpenAIError

from rag_chat.errors import ChatRequestError, EmbeddingRequestError
from rag_chat.knowledge_base import KnowledgeBase
from rag_chat.models import ChatMessage, ChatReply
from rag_chat.prompts import MAX_CONTEXT_SOURCES, build_system_prompt

log = logging.getLogger("rag_chat.chat")

USER_ERROR_MESSAGE = "Sorry, there was an error processing your request. Please try again."


class CompletionClient(Protocol):
    def complete(self, messages: List[Dict[str, str]]) -> str:
        ...


class RAGChatService:
    """
    Retrieval-augmented chat: search the knowledge base, put the best
    snippets into the system prompt, then ask the chat model.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        client: CompletionClient,
        *,
        top_k: int = MAX_CONTEXT_SOURCES,
        history_turns: int = 6,
    ) -> None:
        self.knowledge_base = knowledge_base
        self._client = client
        self._top_k = min(top_k, MAX_CONTEXT_SOURCES)
        self._history_turns = history_turns

    def build_messages(
        self,
        system_prompt: str,
        user_query: str,
        history: Sequence[ChatMessage] = (),
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]

        recent = list(history)[-self._history_turns:] if self._history_turns > 0 else []
        messages.extend({"role": msg.role, "content": msg.content} for msg in recent)

        messages.append({"role": "user", "content": user_query})
        return messages

    def chat(self, user_query: str, history: Sequence[ChatMessage] = ()) -> ChatReply:
        """
        Answer `user_query`. Raises ChatRequestError (with a message fit for
        the end user) when the query embedding or the completion request fails.
        """
        if not user_query or not user_query.strip():
            raise ValueError("Query must not be empty")

        try:
            results = self.knowledge_base.search(user_query, top_k=self._top_k)
            system_prompt = build_system_prompt(results)
            messages = self.build_messages(system_prompt, user_query, history)

            log.info(
                "Chat query with %d sources, %d history turns", len(results), len(messages) - 2
            )
            response = self._client.complete(messages)
        except (OpenAIError, EmbeddingRequestError) as e:
            log.error("Chat request failed: %s: %s", type(e).__name__, e)
            raise ChatRequestError(USER_ERROR_MESSAGE) from e

        return ChatReply(response=response, sources=[r.document for r in results])
