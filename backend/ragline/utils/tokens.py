"""Token counting utilities."""

from __future__ import annotations

from functools import lru_cache

import tiktoken

DEFAULT_TOKENIZER_MODEL = "gpt-3.5-turbo"


@lru_cache(maxsize=8)
def get_encoding(model: str = DEFAULT_TOKENIZER_MODEL) -> tiktoken.Encoding:
    """Return the tiktoken encoding for a model, falling back to cl100k_base."""
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str, model: str = DEFAULT_TOKENIZER_MODEL) -> int:
    """Count tokens in text using the target model's tokenizer."""
    if not text:
        return 0
    return len(get_encoding(model).encode(text))


def truncate_to_tokens(text: str, max_tokens: int, model: str = DEFAULT_TOKENIZER_MODEL) -> str:
    """Cut text down to at most ``max_tokens`` tokens."""
    encoding = get_encoding(model)
    tokens = encoding.encode(text)
    if len(tokens) <= max_tokens:
        return text
    return encoding.decode(tokens[: max(max_tokens, 0)])


def estimate_tokens(text: str) -> int:
    """Rough token estimate (four characters per token)."""
    return -(-len(text) // 4)


__all__ = ["count_tokens", "truncate_to_tokens", "estimate_tokens", "get_encoding"]
