from __future__ import annotations

import re
from typing import List

from rag_chat.tokenizer import token_list

_SENTENCE_END = re.compile(r"[.!?]+")
FALLBACK_CHARS = 200


def split_sentences(content: str) -> List[str]:
    return [s for s in _SENTENCE_END.split(content) if s.strip()]


def _sentence_score(query_tokens: List[str], sentence: str) -> int:
    sentence_tokens = token_list(sentence)
    score = 0
    for word in query_tokens:
        # bidirectional substring match catches simple stems ("run" / "running")
        if any(word in st or st in word for st in sentence_tokens):
            score += 1
    return score


def select_snippet(query: str, content: str) -> str:
    """
    Return the sentence of `content` that best matches `query`.

    Each query token earns a sentence one point when it is a substring of one
    of the sentence's tokens or the other way round. The first sentence wins
    ties. When nothing scores, the first FALLBACK_CHARS characters of the
    content are returned followed by "...".
    """
    query_tokens = token_list(query)

    best_sentence = ""
    best_score = 0
    for sentence in split_sentences(content):
        score = _sentence_score(query_tokens, sentence)
        if score > best_score:
            best_score = score
            best_sentence = sentence.strip()

    return best_sentence or content[:FALLBACK_CHARS] + "..."
