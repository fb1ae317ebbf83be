"""
Unit tests for word pairing strategies
"""

import numpy as np
import pytest

from epigeo.modules.correspondence import (
    Correspondence,
    find_pairs,
    find_pairs_all,
    find_pairs_ordered,
    find_pairs_unique,
    pairs_to_points,
    words_from_observations,
)


class TestPairing:
    """a=[1 2 3 4 6 6], b=[1 1 2 4 5 6 6]"""

    def test_unique_emits_only_singleton_words(self, reference_words):
        words_a, words_b = reference_words
        count, pairs = find_pairs_unique(words_a, words_b)

        assert [p.word_id for p in pairs] == [2, 4]
        assert pairs[0] == Correspondence(2, (20.0, 20.0), (21.0, 20.0))
        assert pairs[1] == Correspondence(4, (40.0, 40.0), (41.0, 40.0))
        assert count == 5

    def test_unique_counts_one_vs_many_words(self):
        count, pairs = find_pairs_unique({7: [(1.0, 1.0)]}, {7: [(2.0, 2.0)] * 3})
        assert pairs == []
        assert count == 1

    def test_all_emits_cross_product(self, reference_words):
        words_a, words_b = reference_words
        count, pairs = find_pairs_all(words_a, words_b)

        assert len(pairs) == 8
        assert count == 5
        ids = [p.word_id for p in pairs]
        assert ids.count(1) == 2
        assert ids.count(2) == 1
        assert ids.count(4) == 1
        assert ids.count(6) == 4
        six = [(p.pt_a, p.pt_b) for p in pairs if p.word_id == 6]
        assert six == [
            ((60.0, 60.0), (62.0, 60.0)),
            ((60.0, 60.0), (63.0, 61.0)),
            ((61.0, 61.0), (62.0, 60.0)),
            ((61.0, 61.0), (63.0, 61.0)),
        ]

    def test_ordered_pairs_same_positions(self, reference_words):
        words_a, words_b = reference_words
        count, pairs = find_pairs_ordered(words_a, words_b)

        assert count == 5
        assert len(pairs) == 5
        assert [p.word_id for p in pairs] == [1, 2, 4, 6, 6]
        assert pairs[0].pt_b == (11.0, 10.0)
        assert (pairs[3].pt_a, pairs[3].pt_b) == ((60.0, 60.0), (62.0, 60.0))
        assert (pairs[4].pt_a, pairs[4].pt_b) == ((61.0, 61.0), (63.0, 61.0))

    def test_no_shared_words(self):
        count, pairs = find_pairs_unique({1: [(0.0, 0.0)]}, {2: [(1.0, 1.0)]})
        assert count == 0
        assert pairs == []

    def test_find_pairs_dispatch(self, reference_words):
        words_a, words_b = reference_words
        assert find_pairs(words_a, words_b, "all") == find_pairs_all(words_a, words_b)
        assert find_pairs(words_a, words_b) == find_pairs_unique(words_a, words_b)
        assert find_pairs(words_a, words_b, "ordered") == find_pairs_ordered(words_a, words_b)

    def test_find_pairs_unknown_policy(self, reference_words):
        words_a, words_b = reference_words
        with pytest.raises(ValueError):
            find_pairs(words_a, words_b, "nearest")

    def test_pairs_are_immutable(self):
        pair = Correspondence(1, (0.0, 0.0), (1.0, 1.0))
        with pytest.raises(AttributeError):
            pair.word_id = 2


class TestObservations:

    def test_words_from_observations_keeps_order(self):
        ids = [6, 1, 6]
        pts = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        words = words_from_observations(ids, pts)
        assert words == {6: [(1.0, 2.0), (5.0, 6.0)], 1: [(3.0, 4.0)]}

    def test_words_from_observations_length_mismatch(self):
        with pytest.raises(ValueError):
            words_from_observations([1, 2], np.zeros((3, 2)))

    def test_pairs_to_points(self, reference_words):
        _, pairs = find_pairs_ordered(*reference_words)
        pts_a, pts_b = pairs_to_points(pairs)
        assert pts_a.shape == (5, 2) and pts_b.shape == (5, 2)
        assert pts_a.dtype == np.float32
        np.testing.assert_allclose(pts_a[0], [10.0, 10.0])
        np.testing.assert_allclose(pts_b[0], [11.0, 10.0])

    def test_pairs_to_points_empty(self):
        pts_a, pts_b = pairs_to_points([])
        assert pts_a.shape == (0, 2) and pts_b.shape == (0, 2)
