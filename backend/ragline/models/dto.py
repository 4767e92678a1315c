"""Pydantic option models accepted by the public entry points."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

SearchStrategy = Literal["vector", "keyword", "hybrid"]


class SearchOptions(BaseModel):
    top_k: int = Field(default=10, ge=1, le=200)
    min_score: float | None = None
    filter: dict[str, Any] | None = Field(default=None, description="Metadata filter passed to the vector store")
    timeout: float | None = Field(default=None, gt=0, description="Seconds allowed for each upstream call")


class AskOptions(BaseModel):
    strategy: SearchStrategy = "hybrid"
    use_reranking: bool | None = Field(default=None, description="Overrides the configured rerank toggle")
    top_k: int = Field(default=5, ge=1, le=100, description="Candidates kept after re-ranking")
    search: SearchOptions = Field(default_factory=SearchOptions)
    timeout: float | None = Field(default=None, gt=0, description="Seconds allowed for generation")


class CorpusChunk(BaseModel):
    """One line of a JSONL corpus snapshot."""

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


__all__ = ["SearchStrategy", "SearchOptions", "AskOptions", "CorpusChunk"]
