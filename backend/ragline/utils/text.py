"""Text processing helpers."""

from __future__ import annotations

import re


WHITESPACE_RE = re.compile(r"\s+")
WORD_RE = re.compile(r"\w+")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def clean_for_embedding(text: str) -> str:
    """Drop NUL bytes and collapse whitespace."""
    return normalize(text.replace("\0", ""))


def word_tokens(text: str) -> list[str]:
    """Lowercase word tokens used by the keyword index."""
    return WORD_RE.findall(text.lower())


def word_set(text: str) -> set[str]:
    return set(text.lower().split())


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard similarity over lowercase whitespace-delimited word sets."""
    set_a = word_set(a)
    set_b = word_set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)
