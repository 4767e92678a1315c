"""Retrieval and ranking components."""

from .keyword import KeywordRetriever
from .vector import VectorRetriever
from .fusion import FusionCombiner, reciprocal_rank_fusion
from .rerank import (
    CrossEncoderReranker,
    DiversityReranker,
    MMRReranker,
    RelevanceReranker,
    Reranker,
    RerankService,
    build_reranker,
)
from .search import HybridSearch

__all__ = [
    "KeywordRetriever",
    "VectorRetriever",
    "FusionCombiner",
    "reciprocal_rank_fusion",
    "Reranker",
    "RelevanceReranker",
    "DiversityReranker",
    "MMRReranker",
    "CrossEncoderReranker",
    "RerankService",
    "build_reranker",
    "HybridSearch",
]
