"""Internal dataclasses flowing through the retrieval pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

_KNOWN_METADATA_KEYS = {
    "source": "source",
    "sourceType": "source_type",
    "source_type": "source_type",
    "title": "title",
    "heading": "heading",
    "chunkIndex": "chunk_index",
    "chunk_index": "chunk_index",
    "startLine": "start_line",
    "start_line": "start_line",
    "endLine": "end_line",
    "end_line": "end_line",
    "tokens": "token_count",
    "tokenCount": "token_count",
    "token_count": "token_count",
}


@dataclass(slots=True)
class CandidateMetadata:
    source: str
    source_type: str = "text"
    title: str | None = None
    heading: str | None = None
    chunk_index: int | None = None
    start_line: int | None = None
    end_line: int | None = None
    token_count: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "CandidateMetadata":
        """Build metadata from a store payload, accepting camelCase keys."""
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in raw.items():
            mapped = _KNOWN_METADATA_KEYS.get(key)
            if mapped:
                known[mapped] = value
            elif key != "content":
                extra[key] = value
        known.setdefault("source", "")
        for int_key in ("chunk_index", "start_line", "end_line", "token_count"):
            if known.get(int_key) is not None:
                known[int_key] = int(known[int_key])
        return cls(extra=extra, **known)

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"source": self.source, "source_type": self.source_type}
        for key in ("title", "heading", "chunk_index", "start_line", "end_line", "token_count"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        payload.update(self.extra)
        return payload


@dataclass(slots=True)
class Candidate:
    """A retrieved document fragment; ``score`` is method-specific until fused."""

    id: str
    content: str
    score: float
    metadata: CandidateMetadata


@dataclass(slots=True)
class RerankedCandidate(Candidate):
    original_score: float = 0.0
    reranked_score: float = 0.0
    reason: str | None = None

    @classmethod
    def from_candidate(
        cls,
        candidate: Candidate,
        reranked_score: float,
        reason: str | None = None,
    ) -> "RerankedCandidate":
        original = candidate.original_score if isinstance(candidate, RerankedCandidate) else candidate.score
        return cls(
            id=candidate.id,
            content=candidate.content,
            score=reranked_score,
            metadata=candidate.metadata,
            original_score=original,
            reranked_score=reranked_score,
            reason=reason,
        )


@dataclass(slots=True)
class Citation:
    source: str
    title: str | None = None
    heading: str | None = None
    start_line: int | None = None
    end_line: int | None = None
    chunk_index: int | None = None


@dataclass(slots=True)
class GeneratedContext:
    system_prompt: str
    user_prompt: str
    candidates_used: list[Candidate]
    total_tokens: int
    context_tokens: int
    truncated: bool


@dataclass(slots=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass(slots=True)
class LLMResponse:
    text: str
    model: str
    token_usage: TokenUsage
    finish_reason: str | None = None


@dataclass(slots=True)
class StreamChunk:
    content: str
    done: bool = False


@dataclass(slots=True)
class VectorRecord:
    id: str
    values: list[float]
    metadata: dict[str, Any]


@dataclass(slots=True)
class VectorMatch:
    id: str
    score: float
    metadata: dict[str, Any]


@dataclass(slots=True)
class SearchMetrics:
    total_results: int
    vector_results: int
    keyword_results: int
    fused_results: int
    search_time: float
    vector_weight: float
    keyword_weight: float


@dataclass(slots=True)
class HybridSearchResult:
    results: list[Candidate]
    metrics: SearchMetrics


@dataclass(slots=True)
class RerankMetrics:
    original_count: int
    reranked_count: int
    strategy: str
    rerank_time: float
    diversity_score: float


@dataclass(slots=True)
class QueryTiming:
    retrieval: float
    generation: float
    total: float
    rerank: float | None = None


@dataclass(slots=True)
class QueryResult:
    question: str
    answer: str
    citations: list[Citation]
    candidates: list[Candidate]
    timing: QueryTiming
    token_usage: TokenUsage
    model_name: str
    truncated: bool = False


__all__ = [
    "CandidateMetadata",
    "Candidate",
    "RerankedCandidate",
    "Citation",
    "GeneratedContext",
    "TokenUsage",
    "LLMResponse",
    "StreamChunk",
    "VectorRecord",
    "VectorMatch",
    "SearchMetrics",
    "HybridSearchResult",
    "RerankMetrics",
    "QueryTiming",
    "QueryResult",
]
