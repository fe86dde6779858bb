"""
Tests for hybrid lexical/vector ranking.
"""

import math

import numpy as np
import pytest

from contribux.exceptions import DimensionMismatch, InvalidVector, InvalidWeights, RankingCancelled
from contribux.scoring import CancellationToken, OpportunitySnapshot, RankingConfig, RepositorySnapshot, rank
from contribux.scoring.hybrid_ranker import REASON_SEMANTIC_MATCH, REASON_TEXT_MATCH


def vector_at(similarity: float) -> np.ndarray:
    """Unit vector with the given cosine similarity to [1, 0]."""
    return np.array([similarity, math.sqrt(1.0 - similarity**2)])


def opportunity(opp_id: int, title: str = "Untitled", **kwargs) -> OpportunitySnapshot:
    return OpportunitySnapshot(id=opp_id, repository_id=1, title=title, **kwargs)


VECTOR_ONLY = RankingConfig(text_weight=0.0, vector_weight=1.0, similarity_threshold=0.0)


class TestRankingConfig:
    def test_defaults(self):
        config = RankingConfig()
        assert config.text_weight == 0.3
        assert config.vector_weight == 0.7
        assert config.similarity_threshold == 0.1

    def test_both_weights_zero(self):
        with pytest.raises(InvalidWeights):
            RankingConfig(text_weight=0.0, vector_weight=0.0)

    @pytest.mark.parametrize("value", [-0.1, float("nan"), float("inf")])
    def test_invalid_weight(self, value):
        with pytest.raises(InvalidWeights):
            RankingConfig(text_weight=value)

    @pytest.mark.parametrize("threshold", [-0.5, 1.5])
    def test_threshold_out_of_range(self, threshold):
        with pytest.raises(InvalidWeights):
            RankingConfig(similarity_threshold=threshold)

    def test_lexical_only(self):
        config = RankingConfig(similarity_threshold=0.2).lexical_only()
        assert config.text_weight == 1.0
        assert config.vector_weight == 0.0
        assert config.similarity_threshold == 0.2


class TestRank:
    """Tests for rank()."""

    def test_vector_only_orders_by_similarity(self):
        candidates = [
            opportunity(1, title_embedding=vector_at(0.1)),
            opportunity(2, title_embedding=vector_at(0.3)),
        ]

        results = rank(None, vector_at(0.31), candidates, VECTOR_ONLY)

        assert [r.id for r in results] == [2, 1]

    def test_relevance_is_non_increasing(self):
        candidates = [opportunity(i, title_embedding=vector_at(s)) for i, s in enumerate([0.2, 0.9, 0.5, 0.7])]

        scores = [r.relevance_score for r in rank(None, [1.0, 0.0], candidates, VECTOR_ONLY)]

        assert scores == sorted(scores, reverse=True)

    def test_best_embedding_is_used(self):
        candidates = [
            opportunity(1, title_embedding=vector_at(0.1), description_embedding=vector_at(0.95)),
            opportunity(2, title_embedding=vector_at(0.6)),
        ]

        results = rank(None, [1.0, 0.0], candidates, VECTOR_ONLY)

        assert results[0].id == 1
        assert results[0].relevance_score == pytest.approx(0.95)

    def test_threshold_drops_weak_candidates(self):
        candidates = [
            opportunity(1, title_embedding=vector_at(0.05)),
            opportunity(2, title_embedding=vector_at(0.8)),
        ]
        config = RankingConfig(text_weight=0.0, vector_weight=1.0, similarity_threshold=0.1)

        assert [r.id for r in rank(None, [1.0, 0.0], candidates, config)] == [2]

    def test_ties_broken_by_health_then_id(self):
        candidates = [
            opportunity(3, title_embedding=vector_at(0.5), repository_health=10),
            opportunity(1, title_embedding=vector_at(0.5), repository_health=10),
            opportunity(2, title_embedding=vector_at(0.5), repository_health=90),
        ]

        assert [r.id for r in rank(None, [1.0, 0.0], candidates, VECTOR_ONLY)] == [2, 1, 3]

    def test_blended_score(self):
        candidate = opportunity(1, title="Fix flaky test", title_embedding=vector_at(0.5))
        config = RankingConfig(text_weight=0.3, vector_weight=0.7, similarity_threshold=0.0)

        (result,) = rank("Fix flaky test", [1.0, 0.0], [candidate], config)

        assert result.relevance_score == pytest.approx(0.3 * 1.0 + 0.7 * 0.5)
        assert result.reasons == (REASON_TEXT_MATCH, REASON_SEMANTIC_MATCH)

    def test_lexical_only_without_vector(self):
        candidates = [opportunity(1, title="Improve python documentation"), opportunity(2, title="Speed up parser")]

        results = rank("python documentation", None, candidates, RankingConfig().lexical_only())

        assert results[0].id == 1
        assert results[0].reasons == (REASON_TEXT_MATCH,)

    def test_ranks_repositories(self):
        candidates = [
            RepositorySnapshot(id=1, full_name="octo/pyweb", embedding=vector_at(0.2)),
            RepositorySnapshot(id=2, full_name="octo/rustc", embedding=vector_at(0.9)),
        ]

        assert [r.id for r in rank(None, [1.0, 0.0], candidates, VECTOR_ONLY)] == [2, 1]

    def test_pure(self):
        candidates = [opportunity(i, title_embedding=vector_at(s)) for i, s in enumerate([0.2, 0.9, 0.5])]

        first = rank("flaky", [1.0, 0.0], candidates)
        second = rank("flaky", [1.0, 0.0], candidates)

        assert first == second

    def test_invalid_query_vector(self):
        with pytest.raises(InvalidVector):
            rank(None, [float("nan"), 1.0], [opportunity(1)])

    def test_query_dimension_differs_from_embeddings(self):
        candidates = [opportunity(1, title_embedding=np.array([1.0, 0.0]))]

        with pytest.raises(DimensionMismatch) as exc_info:
            rank(None, [1.0, 0.0, 0.0], candidates, VECTOR_ONLY)
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3

    def test_corrupted_stored_embedding_fails_loudly(self):
        candidates = [
            opportunity(1, title_embedding=vector_at(0.9)),
            opportunity(2, title_embedding=vector_at(0.5), description_embedding=np.array([1.0, 0.0, 0.0])),
        ]

        with pytest.raises(DimensionMismatch):
            rank(None, [1.0, 0.0], candidates, VECTOR_ONLY)

    def test_cancelled_token_returns_no_partial_list(self):
        token = CancellationToken()
        token.cancel()
        candidates = [opportunity(i, title="flaky") for i in range(10)]

        with pytest.raises(RankingCancelled):
            rank("flaky", None, candidates, RankingConfig(batch_size=3), cancel_token=token)
