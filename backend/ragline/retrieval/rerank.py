"""Re-ranking strategies.

Every strategy takes an already ranked candidate list and returns
``RerankedCandidate`` values with ``original_score`` preserved. The strategy is
chosen once at construction time (see ``build_reranker``):

* ``relevance`` boosts scores for query-term overlap with the title and heading
  and for chunks that appear early in their parent document;
* ``diversity`` walks the ranking and drops candidates too similar to ones
  already admitted, rewarding sources not seen yet;
* ``mmr`` greedily trades relevance against redundancy (Maximal Marginal
  Relevance);
* ``cross-encoder`` rescores (query, passage) pairs with a sentence-transformers
  CrossEncoder.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence

from ragline.core.config import RankingConfig
from ragline.core.errors import ConfigurationError
from ragline.core.logging import get_logger
from ragline.models.entities import Candidate, RerankedCandidate, RerankMetrics
from ragline.utils.text import jaccard_similarity, word_set

logger = get_logger(__name__)

Similarity = Callable[[Candidate, Candidate], float]

MIN_QUERY_TERM_LENGTH = 3


def content_similarity(a: Candidate, b: Candidate) -> float:
    return jaccard_similarity(a.content, b.content)


def chunk_similarity(a: Candidate, b: Candidate) -> float:
    """Jaccard text similarity, except the same chunk of the same source is a duplicate."""
    if a.metadata.source == b.metadata.source and a.metadata.chunk_index == b.metadata.chunk_index:
        return 1.0
    return content_similarity(a, b)


def query_terms(query: str) -> set[str]:
    return {term for term in query.lower().split() if len(term) >= MIN_QUERY_TERM_LENGTH}


def diversity_score(results: Sequence[Candidate]) -> float:
    """One minus the mean pairwise content similarity; 1.0 for fewer than two results."""
    if len(results) < 2:
        return 1.0
    total = 0.0
    pairs = 0
    for i in range(len(results)):
        for j in range(i + 1, len(results)):
            total += content_similarity(results[i], results[j])
            pairs += 1
    return 1.0 - total / pairs


class Reranker(ABC):
    """Common contract for every re-ranking strategy."""

    name: str = "base"

    @abstractmethod
    def rerank(
        self,
        candidates: Sequence[Candidate],
        query: str,
        top_k: int | None = None,
    ) -> list[RerankedCandidate]:
        ...


class RelevanceReranker(Reranker):
    """Additive title, heading and position boosts; reorders without dropping."""

    name = "relevance"

    def __init__(self, title_boost: float = 0.2, heading_boost: float = 0.1, position_boost: float = 0.05) -> None:
        self.title_boost = title_boost
        self.heading_boost = heading_boost
        self.position_boost = position_boost

    def rerank(
        self,
        candidates: Sequence[Candidate],
        query: str,
        top_k: int | None = None,
    ) -> list[RerankedCandidate]:
        terms = query_terms(query)
        reranked: list[RerankedCandidate] = []
        for candidate in candidates:
            boost = 0.0
            reasons: list[str] = []

            title_boost = _overlap_boost(candidate.metadata.title, terms, self.title_boost)
            if title_boost > 0:
                boost += title_boost
                reasons.append(f"title match (+{title_boost:.3f})")

            heading_boost = _overlap_boost(candidate.metadata.heading, terms, self.heading_boost)
            if heading_boost > 0:
                boost += heading_boost
                reasons.append(f"heading match (+{heading_boost:.3f})")

            position_boost = self._position_boost(candidate.metadata.chunk_index)
            if position_boost > 0:
                boost += position_boost
                reasons.append(f"early chunk (+{position_boost:.3f})")

            reranked.append(
                RerankedCandidate.from_candidate(
                    candidate,
                    candidate.score + boost,
                    ", ".join(reasons) if reasons else "No boost applied",
                )
            )

        reranked.sort(key=lambda item: item.reranked_score, reverse=True)
        return reranked[:top_k] if top_k else reranked

    def _position_boost(self, chunk_index: int | None) -> float:
        if chunk_index is None:
            return 0.0
        return self.position_boost / (1 + chunk_index * 0.1)


def _overlap_boost(field: str | None, terms: set[str], weight: float) -> float:
    if not field or not terms:
        return 0.0
    words = word_set(field)
    matches = sum(1 for term in terms if term in words)
    return weight * matches / len(terms)


class DiversityReranker(Reranker):
    """Sequential filter admitting only candidates dissimilar to those already admitted."""

    name = "diversity"

    def __init__(
        self,
        similarity_threshold: float = 0.7,
        source_bonus: float = 0.1,
        source_weighting: bool = True,
        similarity: Similarity | None = None,
    ) -> None:
        if not 0 <= similarity_threshold <= 1:
            raise ConfigurationError("Similarity threshold must be between 0 and 1")
        self.similarity_threshold = similarity_threshold
        self.source_bonus = source_bonus
        self.source_weighting = source_weighting
        self.similarity = similarity or chunk_similarity

    def rerank(
        self,
        candidates: Sequence[Candidate],
        query: str,
        top_k: int | None = None,
    ) -> list[RerankedCandidate]:
        selected: list[RerankedCandidate] = []
        seen_sources: set[str] = set()
        for candidate in candidates:
            if top_k and len(selected) >= top_k:
                break
            if self._is_similar_to_selected(candidate, selected):
                continue
            bonus = self._source_bonus(candidate, seen_sources)
            selected.append(
                RerankedCandidate.from_candidate(
                    candidate,
                    candidate.score + bonus,
                    f"Diverse result (source bonus: +{bonus:.3f})",
                )
            )
            seen_sources.add(candidate.metadata.source)
        return selected

    def _is_similar_to_selected(self, candidate: Candidate, selected: Sequence[Candidate]) -> bool:
        return any(self.similarity(candidate, chosen) > self.similarity_threshold for chosen in selected)

    def _source_bonus(self, candidate: Candidate, seen_sources: set[str]) -> float:
        if not self.source_weighting:
            return 0.0
        return 0.0 if candidate.metadata.source in seen_sources else self.source_bonus


class MMRReranker(Reranker):
    """Maximal Marginal Relevance: ``lambda * relevance - (1 - lambda) * max_similarity``."""

    name = "mmr"

    def __init__(self, lambda_: float = 0.5, similarity: Similarity | None = None) -> None:
        if not 0 <= lambda_ <= 1:
            raise ConfigurationError("Lambda must be between 0 and 1")
        self.lambda_ = lambda_
        self.similarity = similarity or content_similarity

    def rerank(
        self,
        candidates: Sequence[Candidate],
        query: str,
        top_k: int | None = None,
    ) -> list[RerankedCandidate]:
        if not candidates:
            return []
        limit = top_k or len(candidates)
        remaining = list(candidates)
        first = remaining.pop(0)
        selected = [RerankedCandidate.from_candidate(first, first.score, "First result (highest relevance)")]

        while remaining and len(selected) < limit:
            best_index = 0
            best_score = float("-inf")
            for idx, candidate in enumerate(remaining):
                max_similarity = max(self.similarity(candidate, chosen) for chosen in selected)
                score = self.lambda_ * candidate.score - (1 - self.lambda_) * max_similarity
                if score > best_score:
                    best_score = score
                    best_index = idx
            chosen = remaining.pop(best_index)
            selected.append(
                RerankedCandidate.from_candidate(
                    chosen,
                    best_score,
                    f"MMR score: {best_score:.4f} (lambda={self.lambda_})",
                )
            )
        return selected


class CrossEncoderReranker(Reranker):
    """Score (query, passage) pairs with a sentence-transformers CrossEncoder."""

    name = "cross-encoder"

    def __init__(self, model_name: str, device: str | None = None, model: Any | None = None) -> None:
        self.model_name = model_name
        self.device = device
        self._model = model

    def rerank(
        self,
        candidates: Sequence[Candidate],
        query: str,
        top_k: int | None = None,
    ) -> list[RerankedCandidate]:
        if not candidates:
            return []
        model = self._load()
        scores = model.predict([[query, candidate.content] for candidate in candidates])
        ranked = sorted(
            zip(candidates, (float(score) for score in scores)),
            key=lambda item: item[1],
            reverse=True,
        )
        reranked = [
            RerankedCandidate.from_candidate(candidate, score, f"cross-encoder score {score:.4f}")
            for candidate, score in ranked
        ]
        return reranked[:top_k] if top_k else reranked

    def _load(self) -> Any:
        if self._model is not None:
            return self._model
        try:
            from sentence_transformers import CrossEncoder
        except ImportError as exc:
            raise ConfigurationError(
                "cross-encoder reranking requires the 'cross-encoder' extra (sentence-transformers)"
            ) from exc
        logger.info("Loading rerank model '%s'", self.model_name)
        self._model = CrossEncoder(self.model_name, device=self.device)
        return self._model


def build_reranker(strategy: str, config: RankingConfig | None = None) -> Reranker:
    """Instantiate the strategy named by configuration."""
    config = config or RankingConfig()
    if strategy == "relevance":
        return RelevanceReranker(
            title_boost=config.title_boost,
            heading_boost=config.heading_boost,
            position_boost=config.position_boost,
        )
    if strategy == "diversity":
        return DiversityReranker(
            similarity_threshold=config.similarity_threshold,
            source_bonus=config.source_bonus,
            source_weighting=config.source_weighting,
        )
    if strategy == "mmr":
        return MMRReranker(lambda_=config.mmr_lambda)
    if strategy == "cross-encoder":
        return CrossEncoderReranker(config.cross_encoder_model)
    raise ConfigurationError(f"Unknown rerank strategy '{strategy}'")


def should_rerank(enabled: bool, override: bool | None) -> bool:
    if override is not None:
        return override
    return enabled


class RerankService:
    """Facade running the configured strategy and reporting rerank metrics."""

    def __init__(self, config: RankingConfig | None = None, reranker: Reranker | None = None) -> None:
        self.config = config or RankingConfig()
        self.reranker = reranker or build_reranker(self.config.rerank_strategy, self.config)
        self._by_strategy: dict[str, Reranker] = {self.reranker.name: self.reranker}

    @property
    def strategy(self) -> str:
        return self.reranker.name

    def rerank(
        self,
        candidates: Sequence[Candidate],
        query: str,
        top_k: int | None = None,
    ) -> tuple[list[RerankedCandidate], RerankMetrics]:
        return self._run(self.reranker, candidates, query, top_k)

    def rerank_pipeline(
        self,
        candidates: Sequence[Candidate],
        query: str,
        strategies: Sequence[str],
        top_k: int | None = None,
    ) -> tuple[list[RerankedCandidate], list[RerankMetrics]]:
        """Apply several strategies in sequence, each consuming the previous output."""
        current: list[Candidate] = list(candidates)
        all_metrics: list[RerankMetrics] = []
        for strategy in strategies:
            reranker = self._strategy(strategy)
            current, metrics = self._run(reranker, current, query, top_k)
            all_metrics.append(metrics)
        return [_as_reranked(candidate) for candidate in current], all_metrics

    def _strategy(self, strategy: str) -> Reranker:
        if strategy not in self._by_strategy:
            self._by_strategy[strategy] = build_reranker(strategy, self.config)
        return self._by_strategy[strategy]

    def _run(
        self,
        reranker: Reranker,
        candidates: Sequence[Candidate],
        query: str,
        top_k: int | None,
    ) -> tuple[list[RerankedCandidate], RerankMetrics]:
        start = time.perf_counter()
        results = reranker.rerank(candidates, query, top_k)
        metrics = RerankMetrics(
            original_count=len(candidates),
            reranked_count=len(results),
            strategy=reranker.name,
            rerank_time=time.perf_counter() - start,
            diversity_score=diversity_score(results),
        )
        logger.debug("Reranked %s -> %s candidates with %s", len(candidates), len(results), reranker.name)
        return results, metrics


def _as_reranked(candidate: Candidate) -> RerankedCandidate:
    if isinstance(candidate, RerankedCandidate):
        return candidate
    return RerankedCandidate.from_candidate(candidate, candidate.score)


__all__ = [
    "Reranker",
    "RelevanceReranker",
    "DiversityReranker",
    "MMRReranker",
    "CrossEncoderReranker",
    "RerankService",
    "build_reranker",
    "should_rerank",
    "chunk_similarity",
    "content_similarity",
    "diversity_score",
    "query_terms",
]
