from __future__ import annotations

import re
from typing import Iterator, List

_NON_WORD = re.compile(r"[^\w\s]")
MIN_TOKEN_CHARS = 3


def tokenize(text: str) -> Iterator[str]:
    """
    Lower-case `text`, replace punctuation with whitespace, split on whitespace
    and yield the tokens that are at least MIN_TOKEN_CHARS long.
    """
    cleaned = _NON_WORD.sub(" ", text.lower())
    for token in cleaned.split():
        if len(token) >= MIN_TOKEN_CHARS:
            yield token


def token_list(text: str) -> List[str]:
    return list(tokenize(text))
