import numpy as np
import pytest
from sklearn.metrics import roc_auc_score

from src.errors import DegenerateLabelSetError, DimensionMismatchError
from src.metrics.auc import roc_auc_rank_sum


class TestRocAucRankSum:
    def test_hand_computed_value(self):
        # positives 0.9, 0.4 vs negatives 0.1, 0.6: 3 of 4 pairs concordant
        auc = roc_auc_rank_sum([1, 0, 1, 0], [0.9, 0.1, 0.4, 0.6])
        assert auc == pytest.approx(0.75)

    def test_all_tied_scores(self):
        assert roc_auc_rank_sum([1, 1, 0, 0], [5, 5, 5, 5]) == pytest.approx(0.5)

    def test_partial_ties_count_half(self):
        # pairs: (3,1)=1, (3,3)=0.5, (2,1)=1, (2,3)=0 -> 2.5 / 4
        auc = roc_auc_rank_sum([1, 1, 0, 0], [3, 2, 1, 3])
        assert auc == pytest.approx(0.625)

    def test_perfect_and_inverted_ranking(self):
        labels = [0, 0, 0, 1, 1]
        scores = [0.1, 0.2, 0.3, 0.8, 0.9]
        assert roc_auc_rank_sum(labels, scores) == pytest.approx(1.0)
        assert roc_auc_rank_sum(labels, [-s for s in scores]) == pytest.approx(0.0)

    def test_matches_sklearn(self):
        rng = np.random.default_rng(7)
        labels = rng.integers(0, 2, size=300)
        scores = np.round(rng.normal(size=300) + labels, 1)
        assert roc_auc_rank_sum(labels, scores) == pytest.approx(roc_auc_score(labels, scores))

    def test_bounds_and_negation_symmetry(self):
        rng = np.random.default_rng(3)
        for _ in range(10):
            labels = rng.integers(0, 2, size=50)
            labels[:2] = [0, 1]
            scores = rng.normal(size=50)
            auc = roc_auc_rank_sum(labels, scores)
            assert 0.0 <= auc <= 1.0
            assert roc_auc_rank_sum(labels, -scores) == pytest.approx(1.0 - auc)

    def test_random_noise_is_near_half(self):
        rng = np.random.default_rng(11)
        aucs = []
        for _ in range(20):
            labels = rng.integers(0, 2, size=2000)
            scores = rng.normal(size=2000)
            aucs.append(roc_auc_rank_sum(labels, scores))
        assert np.mean(aucs) == pytest.approx(0.5, abs=0.02)
        assert all(abs(a - 0.5) < 0.1 for a in aucs)

    def test_single_class_is_degenerate(self):
        with pytest.raises(DegenerateLabelSetError):
            roc_auc_rank_sum([1, 1, 1], [0.1, 0.2, 0.3])
        with pytest.raises(DegenerateLabelSetError):
            roc_auc_rank_sum([0, 0], [0.1, 0.2])

    def test_degenerate_is_value_error(self):
        with pytest.raises(ValueError):
            roc_auc_rank_sum([0, 0], [0.1, 0.2])

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            roc_auc_rank_sum([0, 1, 1], [0.1, 0.2])

    def test_rejects_non_binary_labels(self):
        with pytest.raises(ValueError, match="only 0 and 1"):
            roc_auc_rank_sum([0, 1, 2], [0.1, 0.2, 0.3])

    def test_rejects_nan_scores(self):
        with pytest.raises(ValueError, match="finite"):
            roc_auc_rank_sum([0, 1], [0.1, np.nan])
