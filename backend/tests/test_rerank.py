"""Tests for re-ranking strategies."""

from __future__ import annotations

import pytest

from ragline.core.config import RankingConfig
from ragline.core.errors import ConfigurationError
from ragline.models.entities import RerankedCandidate
from ragline.retrieval.rerank import (
    CrossEncoderReranker,
    DiversityReranker,
    MMRReranker,
    RelevanceReranker,
    RerankService,
    build_reranker,
    chunk_similarity,
    diversity_score,
    should_rerank,
)

DUPLICATE_WORDS = "alpha beta gamma delta epsilon zeta eta theta iota"


@pytest.fixture
def near_duplicates(candidate_factory):
    return [
        candidate_factory("dup-1", f"{DUPLICATE_WORDS} kappa", score=0.9, source="a.md", chunk_index=0),
        candidate_factory("dup-2", f"{DUPLICATE_WORDS} lambda", score=0.85, source="a.md", chunk_index=1),
        candidate_factory("dup-3", f"{DUPLICATE_WORDS} omicron", score=0.8, source="b.md", chunk_index=0),
        candidate_factory("distinct", "completely different text about routing", score=0.5, source="c.md"),
    ]


def test_relevance_boosts_title_match_without_dropping(candidate_factory) -> None:
    candidates = [
        candidate_factory("plain", "body", score=0.5),
        candidate_factory("titled", "body", score=0.45, title="Hooks reference"),
    ]
    reranker = RelevanceReranker()

    results = reranker.rerank(candidates, "hooks")

    assert [item.id for item in results] == ["titled", "plain"]
    titled = results[0]
    assert isinstance(titled, RerankedCandidate)
    assert titled.original_score == pytest.approx(0.45)
    assert titled.reranked_score == pytest.approx(0.65)
    assert "title match" in titled.reason
    assert results[1].reason == "No boost applied"


def test_relevance_position_and_heading_boost(candidate_factory) -> None:
    candidate = candidate_factory("c", "body", score=0.1, heading="Effect hook", chunk_index=10)
    result = RelevanceReranker().rerank([candidate], "effect usage")[0]
    # half the query terms appear in the heading; position boost is 0.05 / 2
    assert result.reranked_score == pytest.approx(0.1 + 0.1 * 0.5 + 0.025)


def test_relevance_short_query_terms_ignored(candidate_factory) -> None:
    candidate = candidate_factory("c", "body", score=0.3, title="an ok title")
    result = RelevanceReranker().rerank([candidate], "an ok")[0]
    assert result.reranked_score == pytest.approx(0.3)


def test_relevance_truncates_to_top_k(docs_corpus) -> None:
    assert len(RelevanceReranker().rerank(docs_corpus, "hooks", top_k=2)) == 2
    assert len(RelevanceReranker().rerank(docs_corpus, "hooks")) == len(docs_corpus)


def test_mmr_with_lambda_one_orders_by_score(near_duplicates) -> None:
    ordered = sorted(near_duplicates, key=lambda item: item.score, reverse=True)
    results = MMRReranker(lambda_=1.0).rerank(ordered, "query")
    assert [item.id for item in results] == ["dup-1", "dup-2", "dup-3", "distinct"]
    assert results[0].reranked_score == pytest.approx(0.9)


def test_mmr_low_lambda_prefers_distinct_candidate(near_duplicates) -> None:
    results = MMRReranker(lambda_=0.3).rerank(near_duplicates, "query", top_k=2)

    assert [item.id for item in results] == ["dup-1", "distinct"]
    assert results[1].reranked_score == pytest.approx(0.3 * 0.5)
    assert results[1].original_score == pytest.approx(0.5)


def test_mmr_rejects_out_of_range_lambda() -> None:
    with pytest.raises(ConfigurationError):
        MMRReranker(lambda_=1.5)


def test_diversity_drops_near_duplicates(near_duplicates) -> None:
    results = DiversityReranker(similarity_threshold=0.7).rerank(near_duplicates, "query")

    assert [item.id for item in results] == ["dup-1", "distinct"]
    assert results[0].reranked_score == pytest.approx(1.0)
    assert results[1].reranked_score == pytest.approx(0.6)


def test_diversity_source_bonus_only_for_new_sources(candidate_factory) -> None:
    candidates = [
        candidate_factory("a0", "first chunk text", score=0.8, source="a.md", chunk_index=0),
        candidate_factory("a1", "other words entirely", score=0.7, source="a.md", chunk_index=1),
    ]
    results = DiversityReranker().rerank(candidates, "query")
    assert [item.reranked_score for item in results] == pytest.approx([0.9, 0.7])

    unweighted = DiversityReranker(source_weighting=False).rerank(candidates, "query")
    assert [item.reranked_score for item in unweighted] == pytest.approx([0.8, 0.7])


def test_same_chunk_of_same_source_is_duplicate(candidate_factory) -> None:
    a = candidate_factory("x1", "one text", source="doc.md", chunk_index=2)
    b = candidate_factory("x2", "unrelated words", source="doc.md", chunk_index=2)
    assert chunk_similarity(a, b) == 1.0
    assert [item.id for item in DiversityReranker().rerank([a, b], "q")] == ["x1"]


def test_diversity_admits_at_threshold(candidate_factory) -> None:
    # Jaccard of {a, b} and {a, c} is 1/3
    candidates = [
        candidate_factory("one", "a b", source="1.md"),
        candidate_factory("two", "a c", source="2.md"),
    ]
    results = DiversityReranker(similarity_threshold=1 / 3).rerank(candidates, "q")
    assert len(results) == 2


def test_diversity_stops_at_top_k(docs_corpus) -> None:
    assert len(DiversityReranker().rerank(docs_corpus, "q", top_k=1)) == 1


class _FakeCrossEncoder:
    def predict(self, pairs):
        return [float(len(passage)) for _, passage in pairs]


def test_cross_encoder_sorts_by_model_score(candidate_factory) -> None:
    candidates = [
        candidate_factory("short", "tiny", score=0.9),
        candidate_factory("long", "a much longer passage", score=0.1),
    ]
    reranker = CrossEncoderReranker("fake-model", model=_FakeCrossEncoder())

    results = reranker.rerank(candidates, "query", top_k=1)

    assert [item.id for item in results] == ["long"]
    assert results[0].original_score == pytest.approx(0.1)


def test_build_reranker_selects_strategy() -> None:
    assert isinstance(build_reranker("relevance"), RelevanceReranker)
    assert isinstance(build_reranker("diversity"), DiversityReranker)
    mmr = build_reranker("mmr", RankingConfig(mmr_lambda=0.2))
    assert isinstance(mmr, MMRReranker) and mmr.lambda_ == pytest.approx(0.2)
    with pytest.raises(ConfigurationError):
        build_reranker("random")


def test_rerank_service_reports_metrics(near_duplicates) -> None:
    service = RerankService(RankingConfig(rerank_strategy="diversity"))

    results, metrics = service.rerank(near_duplicates, "query")

    assert service.strategy == "diversity"
    assert metrics.original_count == 4
    assert metrics.reranked_count == len(results) == 2
    assert metrics.diversity_score == pytest.approx(diversity_score(results))
    assert metrics.rerank_time >= 0


def test_rerank_pipeline_chains_strategies(near_duplicates) -> None:
    service = RerankService()

    results, metrics = service.rerank_pipeline(near_duplicates, "query", ["diversity", "relevance"])

    assert [m.strategy for m in metrics] == ["diversity", "relevance"]
    assert metrics[1].original_count == metrics[0].reranked_count
    # original scores survive both stages
    by_id = {item.id: item for item in results}
    assert by_id["dup-1"].original_score == pytest.approx(0.9)


def test_should_rerank_override() -> None:
    assert should_rerank(True, None) is True
    assert should_rerank(True, False) is False
    assert should_rerank(False, True) is True
