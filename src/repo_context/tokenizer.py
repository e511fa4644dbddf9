"""Approximate token counting for rendered artifacts.

Counts use tiktoken's ``cl100k_base`` encoding. The encoding is loaded on
first use (tiktoken may need to download it), so a missing or broken
tokenizer only surfaces when counting, where it degrades to ``None``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Protocol

import tiktoken

from repo_context.logging import logger

DEFAULT_ENCODING = "cl100k_base"


class TokenCounter(Protocol):
    """Protocol for counting tokens in text."""

    def count(self, text: str) -> int:
        """Count tokens in the given text."""


@lru_cache(maxsize=4)
def _encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


class TiktokenCounter:
    """TokenCounter backed by a tiktoken BPE encoding."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(_encoding(self.encoding_name).encode(text, disallowed_special=()))


def count_tokens(text: str, counter: TokenCounter | None = None) -> int | None:
    """Count tokens, returning None instead of raising when the tokenizer fails.

    Args:
        text (str): the text to count
        counter (TokenCounter | None): the counter to use; defaults to cl100k_base

    Returns:
        int | None: the token count, or None when it could not be computed
    """
    counter = counter or TiktokenCounter()
    try:
        return counter.count(text)
    except Exception as e:  # noqa: BLE001
        logger.warning("token_count_unavailable", error=str(e), error_type=type(e).__name__)
        return None
