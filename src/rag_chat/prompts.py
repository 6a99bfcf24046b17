from __future__ import annotations

from typing import Sequence

from rag_chat.models import SearchResult

MAX_CONTEXT_SOURCES = 3

INSTRUCTIONS = [
    "Answer questions based on your knowledge{extra}",
    "When you use information from the knowledge base, mention the matching source",
    "Be precise, helpful and polite",
    "If you are unsure about something, say so honestly",
]


def format_context(results: Sequence[SearchResult]) -> str:
    """
    Render retrieved snippets as numbered source blocks:

        [Source 1] <title>:
        <snippet>
    """
    blocks = [
        f"[Source {index}] {result.document.title}:\n{result.relevant_chunk}"
        for index, result in enumerate(results[:MAX_CONTEXT_SOURCES], start=1)
    ]
    return "\n\n".join(blocks)


def build_system_prompt(results: Sequence[SearchResult]) -> str:
    """
    System message for the chat model, with the retrieved context inlined
    when there is any.
    """
    context = format_context(results)

    lines = ["You are a helpful AI assistant."]
    if context:
        lines.append(
            "Use the following information from the knowledge base to give precise answers:"
        )
        lines.append("")
        lines.append(context)
        lines.append("")

    extra = " and the provided information" if context else ""
    lines.append("Instructions:")
    lines.extend(f"- {rule.format(extra=extra)}" for rule in INSTRUCTIONS)
    return "\n".join(lines)
