"""Exception hierarchy for Ragline."""

from __future__ import annotations


class RaglineError(Exception):
    """Base exception for all Ragline errors."""


class NotIndexedError(RaglineError):
    """Keyword or hybrid search requested before the keyword index was built."""


class UpstreamError(RaglineError):
    """An embedding, vector store, or LLM call failed or timed out."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class ValidationError(RaglineError):
    """Rejected input, raised before any retrieval work begins."""


class EmptyInputError(RaglineError):
    """Every text passed to the embedder was empty after cleaning."""


class ConfigurationError(RaglineError):
    """Invalid configuration value or missing optional dependency."""


__all__ = [
    "RaglineError",
    "NotIndexedError",
    "UpstreamError",
    "ValidationError",
    "EmptyInputError",
    "ConfigurationError",
]
