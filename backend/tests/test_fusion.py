"""Tests for rank fusion."""

from __future__ import annotations

import pytest

from ragline.core.config import RankingConfig
from ragline.core.errors import ConfigurationError
from ragline.retrieval.fusion import FusionCombiner, normalize_weights, reciprocal_rank_fusion


def _ids(candidates):
    return [candidate.id for candidate in candidates]


def test_candidate_in_both_lists_ranks_first(candidate_factory) -> None:
    list_a = [candidate_factory(i, i) for i in ("a", "b", "c")]
    list_b = [candidate_factory(i, i) for i in ("b", "d")]
    combiner = FusionCombiner(k=60, vector_weight=0.6, keyword_weight=0.4)

    fused = combiner.fuse(list_a, list_b, top_k=3)

    assert _ids(fused) == ["b", "a", "c"]
    assert fused[0].score == pytest.approx(0.6 / 62 + 0.4 / 61)
    assert fused[1].score == pytest.approx(0.6 / 61)


def test_weights_are_normalised() -> None:
    combiner = FusionCombiner(vector_weight=3, keyword_weight=1)
    assert combiner.weights == pytest.approx((0.75, 0.25))
    assert sum(FusionCombiner.from_config(RankingConfig()).weights) == pytest.approx(1.0)


@pytest.mark.parametrize("weights", [(-0.1, 1.0), (0.0, 0.0)])
def test_invalid_weights_rejected(weights) -> None:
    with pytest.raises(ConfigurationError):
        normalize_weights(*weights)


def test_rrf_sums_partial_scores(candidate_factory) -> None:
    shared = candidate_factory("x", "x")
    fused = reciprocal_rank_fusion([([shared], 0.5), ([candidate_factory("y", "y"), shared], 0.5)], k=10)
    scores = {candidate.id: score for candidate, score in fused}
    assert scores["x"] == pytest.approx(0.5 / 11 + 0.5 / 12)
    assert scores["y"] == pytest.approx(0.5 / 11)


def test_ties_break_by_first_seen_order(candidate_factory) -> None:
    combiner = FusionCombiner(k=60, vector_weight=0.5, keyword_weight=0.5)
    fused = combiner.fuse([candidate_factory("a", "a")], [candidate_factory("b", "b")], top_k=2)
    assert _ids(fused) == ["a", "b"]


def test_first_seen_copy_is_kept(candidate_factory) -> None:
    vector_copy = candidate_factory("a", "from vector", score=0.9)
    keyword_copy = candidate_factory("a", "from keyword", score=0.7)
    fused = FusionCombiner().fuse([vector_copy], [keyword_copy], top_k=1)
    assert fused[0].content == "from vector"


def test_weighted_mode_uses_native_scores(candidate_factory) -> None:
    combiner = FusionCombiner(vector_weight=0.7, keyword_weight=0.3, mode="weighted")
    fused = combiner.fuse(
        [candidate_factory("a", "a", score=0.9), candidate_factory("b", "b", score=0.2)],
        [candidate_factory("b", "b", score=0.95)],
        top_k=5,
    )
    scores = {candidate.id: candidate.score for candidate in fused}
    assert scores["a"] == pytest.approx(0.63)
    assert scores["b"] == pytest.approx(0.7 * 0.2 + 0.3 * 0.95)


def test_unknown_mode_rejected() -> None:
    with pytest.raises(ConfigurationError):
        FusionCombiner(mode="borda")  # type: ignore[arg-type]
