"""Rank fusion for hybrid search."""

from __future__ import annotations

from dataclasses import replace
from typing import Literal, Sequence

from ragline.core.config import RankingConfig
from ragline.core.errors import ConfigurationError
from ragline.models.entities import Candidate

FusionMode = Literal["rrf", "weighted"]


def normalize_weights(weight_a: float, weight_b: float) -> tuple[float, float]:
    """Scale a non-negative weight pair so it sums to 1."""
    if weight_a < 0 or weight_b < 0:
        raise ConfigurationError("Fusion weights must be non-negative")
    total = weight_a + weight_b
    if total <= 0:
        raise ConfigurationError("Fusion weights must not both be zero")
    return weight_a / total, weight_b / total


def reciprocal_rank_fusion(
    rankings: Sequence[tuple[Sequence[Candidate], float]],
    k: float = 60.0,
) -> list[tuple[Candidate, float]]:
    """Combine weighted rankings; an item at 0-based rank r adds ``weight / (k + r + 1)``."""
    scores: dict[str, float] = {}
    first_seen: dict[str, Candidate] = {}
    for hits, weight in rankings:
        for rank, candidate in enumerate(hits):
            first_seen.setdefault(candidate.id, candidate)
            scores[candidate.id] = scores.get(candidate.id, 0.0) + weight / (k + rank + 1)
    fused = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [(first_seen[identifier], score) for identifier, score in fused]


def weighted_score_fusion(
    rankings: Sequence[tuple[Sequence[Candidate], float]],
) -> list[tuple[Candidate, float]]:
    """Combine native similarity scores as ``sum(weight * score)``."""
    scores: dict[str, float] = {}
    first_seen: dict[str, Candidate] = {}
    for hits, weight in rankings:
        for candidate in hits:
            first_seen.setdefault(candidate.id, candidate)
            scores[candidate.id] = scores.get(candidate.id, 0.0) + weight * candidate.score
    fused = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [(first_seen[identifier], score) for identifier, score in fused]


class FusionCombiner:
    """Merge a vector-ranked and a keyword-ranked list into one ranking."""

    def __init__(
        self,
        k: int = 60,
        vector_weight: float = 0.5,
        keyword_weight: float = 0.5,
        mode: FusionMode = "rrf",
    ) -> None:
        if k < 0:
            raise ConfigurationError("RRF constant k must be non-negative")
        if mode not in ("rrf", "weighted"):
            raise ConfigurationError(f"Unknown fusion mode '{mode}'")
        self.k = k
        self.mode: FusionMode = mode
        self.vector_weight, self.keyword_weight = normalize_weights(vector_weight, keyword_weight)

    @classmethod
    def from_config(cls, config: RankingConfig) -> "FusionCombiner":
        return cls(
            k=config.rrf_k,
            vector_weight=config.vector_weight,
            keyword_weight=config.keyword_weight,
            mode=config.fusion_mode,
        )

    @property
    def weights(self) -> tuple[float, float]:
        return self.vector_weight, self.keyword_weight

    def fuse(
        self,
        vector_results: Sequence[Candidate],
        keyword_results: Sequence[Candidate],
        top_k: int = 10,
    ) -> list[Candidate]:
        rankings = [(vector_results, self.vector_weight), (keyword_results, self.keyword_weight)]
        if self.mode == "weighted":
            fused = weighted_score_fusion(rankings)
        else:
            fused = reciprocal_rank_fusion(rankings, k=self.k)
        return [replace(candidate, score=score) for candidate, score in fused[:top_k]]


__all__ = [
    "FusionCombiner",
    "normalize_weights",
    "reciprocal_rank_fusion",
    "weighted_score_fusion",
]
