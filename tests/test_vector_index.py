"""
Tests for the brute-force and HNSW vector indexes.
"""

import numpy as np
import pytest

from contribux.exceptions import DimensionMismatch, InvalidLimit, InvalidVector
from contribux.index.vector_index import (
    BruteForceIndex,
    HNSWConfig,
    HNSWIndex,
    create_index,
    normalize_vector,
)


def random_vectors(count: int, dimension: int, seed: int = 7) -> np.ndarray:
    return np.random.default_rng(seed).normal(size=(count, dimension))


@pytest.fixture(params=["brute_force", "hnsw"])
def index(request):
    return create_index(8, request.param, HNSWConfig(m=8, ef_construction=64, ef_search=32))


class TestNormalizeVector:
    """Tests for vector validation."""

    def test_returns_unit_vector(self):
        unit = normalize_vector([3.0, 4.0], 2)
        assert np.allclose(unit, [0.6, 0.8])

    def test_wrong_dimension(self):
        with pytest.raises(DimensionMismatch) as exc_info:
            normalize_vector([1.0, 0.0, 0.0], 2)
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3

    @pytest.mark.parametrize(
        "vector",
        [[0.0, 0.0], [np.nan, 1.0], [np.inf, 1.0]],
    )
    def test_rejects_invalid_vectors(self, vector):
        with pytest.raises(InvalidVector):
            normalize_vector(vector, 2)

    def test_rejects_matrix(self):
        with pytest.raises(InvalidVector):
            normalize_vector([[1.0, 0.0]], 2)


class TestIndexContract:
    """Behaviour shared by both index implementations."""

    def test_self_query_ranks_item_first(self, index):
        vectors = random_vectors(30, 8)
        for i, vector in enumerate(vectors):
            index.upsert(i, vector)

        results = index.query(vectors[11], k=5)

        assert results[0][0] == 11
        assert results[0][1] == pytest.approx(1.0, abs=1e-6)

    def test_results_ordered_by_similarity(self, index):
        vectors = random_vectors(40, 8)
        for i, vector in enumerate(vectors):
            index.upsert(i, vector)

        similarities = [s for _, s in index.query(vectors[0], k=10)]

        assert similarities == sorted(similarities, reverse=True)

    def test_upsert_replaces_vector(self, index):
        index.upsert(1, [1, 0, 0, 0, 0, 0, 0, 0])
        index.upsert(1, [0, 1, 0, 0, 0, 0, 0, 0])

        results = index.query([0, 1, 0, 0, 0, 0, 0, 0], k=5)

        assert len(index) == 1
        assert results == [(1, pytest.approx(1.0))]

    def test_remove(self, index):
        index.upsert(1, [1, 0, 0, 0, 0, 0, 0, 0])
        index.upsert(2, [0, 1, 0, 0, 0, 0, 0, 0])

        assert index.remove(1) is True
        assert index.remove(1) is False
        assert 1 not in index
        assert [i for i, _ in index.query([1, 0, 0, 0, 0, 0, 0, 0], k=5)] == [2]

    def test_ties_prefer_most_recent_upsert(self, index):
        vector = [1, 1, 0, 0, 0, 0, 0, 0]
        index.upsert(5, vector)
        index.upsert(3, vector)
        index.upsert(9, vector)

        assert [i for i, _ in index.query(vector, k=3)] == [9, 3, 5]

    def test_min_similarity_filters(self, index):
        index.upsert(1, [1, 0, 0, 0, 0, 0, 0, 0])
        index.upsert(2, [0, 1, 0, 0, 0, 0, 0, 0])

        results = index.query([1, 0.1, 0, 0, 0, 0, 0, 0], k=5, min_similarity=0.5)

        assert [i for i, _ in results] == [1]

    def test_empty_index_returns_nothing(self, index):
        assert index.query([1, 0, 0, 0, 0, 0, 0, 0], k=3) == []

    def test_query_dimension_mismatch(self, index):
        index.upsert(1, [1, 0, 0, 0, 0, 0, 0, 0])
        with pytest.raises(DimensionMismatch):
            index.query([1, 0, 0], k=1)

    def test_upsert_zero_vector(self, index):
        with pytest.raises(InvalidVector):
            index.upsert(1, np.zeros(8))

    @pytest.mark.parametrize("k", [0, -1])
    def test_invalid_k(self, index, k):
        index.upsert(1, [1, 0, 0, 0, 0, 0, 0, 0])
        with pytest.raises(InvalidLimit):
            index.query([1, 0, 0, 0, 0, 0, 0, 0], k=k)


class TestHNSWIndex:
    """Tests specific to the graph index."""

    def test_recall_against_brute_force(self):
        dimension = 16
        vectors = random_vectors(500, dimension, seed=11)
        queries = random_vectors(25, dimension, seed=12)
        exact = BruteForceIndex(dimension)
        graph = HNSWIndex(dimension, HNSWConfig(m=12, ef_construction=100, ef_search=64))
        for i, vector in enumerate(vectors):
            exact.upsert(i, vector)
            graph.upsert(i, vector)

        hits = 0
        for query in queries:
            truth = {i for i, _ in exact.query(query, k=10)}
            found = {i for i, _ in graph.query(query, k=10)}
            hits += len(truth & found)

        assert hits / (10 * len(queries)) >= 0.9

    def test_identical_inserts_build_same_results(self):
        vectors = random_vectors(100, 8)
        first = HNSWIndex(8, HNSWConfig(m=6))
        second = HNSWIndex(8, HNSWConfig(m=6))
        for i, vector in enumerate(vectors):
            first.upsert(i, vector)
            second.upsert(i, vector)

        assert first.query(vectors[4], k=10) == second.query(vectors[4], k=10)

    def test_compaction_drops_tombstones(self):
        index = HNSWIndex(8, HNSWConfig(m=4, compaction_ratio=0.5))
        vectors = random_vectors(20, 8)
        for i, vector in enumerate(vectors):
            index.upsert(i, vector)

        for i in range(11):
            index.remove(i)

        assert index.tombstones == 0
        assert len(index) == 9
        assert {i for i, _ in index.query(vectors[15], k=20)} == set(range(11, 20))

    def test_compaction_keeps_live_vectors(self):
        index = HNSWIndex(4, HNSWConfig(m=4, compaction_ratio=0.5))
        index.upsert(1, [1, 0, 0, 0])
        index.upsert(2, [0, 2, 0, 0])
        index.upsert(1, [0, 0, 3, 0])
        index.remove(2)

        assert index.tombstones == 0
        ((item_id, vector),) = list(index.items())
        assert item_id == 1
        assert np.allclose(vector, [0, 0, 1, 0], atol=1e-6)
        assert index.query([0, 0, 1, 0], k=1) == [(1, pytest.approx(1.0, abs=1e-6))]

    def test_removed_items_never_returned(self):
        index = HNSWIndex(8)
        vectors = random_vectors(20, 8)
        for i, vector in enumerate(vectors):
            index.upsert(i, vector)

        index.remove(4)

        assert 4 not in [i for i, _ in index.query(vectors[4], k=20)]
        assert index.tombstones == 1

    def test_items_in_upsert_order(self):
        index = HNSWIndex(4)
        index.upsert(7, [1, 0, 0, 0])
        index.upsert(2, [0, 1, 0, 0])
        index.upsert(7, [0, 0, 1, 0])

        assert [i for i, _ in index.items()] == [2, 7]


class TestCreateIndex:
    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown index type"):
            create_index(4, "annoy")

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            HNSWConfig(m=1)
