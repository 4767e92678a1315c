"""Search orchestration."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Mapping, Sequence

from ragline.core.config import RankingConfig
from ragline.core.errors import NotIndexedError, ValidationError
from ragline.core.logging import get_logger
from ragline.core.metrics import SEARCH_COUNT, STAGE_LATENCY
from ragline.models.dto import SearchOptions, SearchStrategy
from ragline.models.entities import Candidate, HybridSearchResult, SearchMetrics
from ragline.retrieval.fusion import FusionCombiner
from ragline.retrieval.keyword import KeywordRetriever
from ragline.retrieval.vector import VectorRetriever

logger = get_logger(__name__)

FUSION_CANDIDATE_MULTIPLIER = 2


def validate_query(query: Any) -> str:
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Query must be a non-empty string")
    return query


class HybridSearch:
    """Coordinates vector, keyword, and fused retrieval flows."""

    def __init__(
        self,
        vector: VectorRetriever,
        keyword: KeywordRetriever | None = None,
        fusion: FusionCombiner | None = None,
    ) -> None:
        self.vector = vector
        self.keyword = keyword or KeywordRetriever()
        self.fusion = fusion or FusionCombiner.from_config(RankingConfig())

    @property
    def is_ready(self) -> bool:
        return self.keyword.is_indexed

    def index_documents(self, corpus: Sequence[Candidate]) -> None:
        """Build the keyword index; required before keyword or hybrid search."""
        self.keyword.index(corpus)

    async def search(
        self,
        query: str,
        strategy: SearchStrategy = "hybrid",
        options: SearchOptions | None = None,
    ) -> HybridSearchResult:
        validate_query(query)
        options = options or SearchOptions()
        start_time = time.perf_counter()
        top_k = options.top_k

        vector_results: list[Candidate] = []
        keyword_results: list[Candidate] = []
        if strategy == "vector":
            results = await self.vector.search(query, top_k, options.filter, timeout=options.timeout)
            vector_results = results
        elif strategy == "keyword":
            self._require_index()
            results = self.keyword.search(query, top_k)
            keyword_results = results
        elif strategy == "hybrid":
            results, vector_results, keyword_results = await self._hybrid(query, top_k, options.filter, options.timeout)
        else:
            raise ValidationError(f"Unknown search strategy '{strategy}'")

        if options.min_score is not None:
            results = [candidate for candidate in results if candidate.score >= options.min_score]

        search_time = time.perf_counter() - start_time
        SEARCH_COUNT.labels(strategy=strategy).inc()
        STAGE_LATENCY.labels(stage="search").observe(search_time)
        vector_weight, keyword_weight = self.fusion.weights
        metrics = SearchMetrics(
            total_results=len(results),
            vector_results=len(vector_results),
            keyword_results=len(keyword_results),
            fused_results=len(results) if strategy == "hybrid" else 0,
            search_time=search_time,
            vector_weight=vector_weight,
            keyword_weight=keyword_weight,
        )
        logger.debug(
            "Search finished",
            extra={"ctx_strategy": strategy, "ctx_results": len(results), "ctx_seconds": search_time},
        )
        return HybridSearchResult(results=results, metrics=metrics)

    async def _hybrid(
        self,
        query: str,
        top_k: int,
        filter: Mapping[str, Any] | None,
        timeout: float | None,
    ) -> tuple[list[Candidate], list[Candidate], list[Candidate]]:
        self._require_index()
        fetch_k = top_k * FUSION_CANDIDATE_MULTIPLIER
        # the keyword index is swapped atomically, so the thread sees one consistent snapshot
        vector_results, keyword_results = await asyncio.gather(
            self.vector.search(query, fetch_k, filter, timeout=timeout),
            asyncio.to_thread(self.keyword.search, query, fetch_k),
        )
        fused = self.fusion.fuse(vector_results, keyword_results, top_k)
        return fused, vector_results, keyword_results

    def _require_index(self) -> None:
        if not self.keyword.is_indexed:
            raise NotIndexedError("Keyword index not ready. Call index_documents() first.")


__all__ = ["HybridSearch", "validate_query", "FUSION_CANDIDATE_MULTIPLIER"]
