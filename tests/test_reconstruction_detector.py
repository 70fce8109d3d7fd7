import numpy as np
import pytest

from src.errors import DegenerateLabelSetError, InvalidRankError
from src.models.reconstruction_detector import ReconstructionAnomalyDetector
from conftest import make_shifted_dataset


class TestReconstructionAnomalyDetector:
    def test_unfitted_raises(self):
        detector = ReconstructionAnomalyDetector()
        with pytest.raises(ValueError, match="not fitted"):
            detector.score_samples(np.zeros((2, 5)))
        with pytest.raises(ValueError, match="not fitted"):
            detector.get_explained_variance_ratio()

    @pytest.mark.parametrize('method', ['svd', 'pca'])
    def test_fit_selects_rank_and_separates(self, shifted_dataset, method):
        X, y = shifted_dataset
        detector = ReconstructionAnomalyDetector(method=method, max_rank=5).fit(X, y)

        assert 1 <= detector.selected_rank_ <= 5
        assert len(detector.auc_by_rank_) == 5
        assert detector.train_auc_ == pytest.approx(detector.auc_by_rank_.max())
        assert detector.train_auc_ > 0.8
        assert detector.n_reference_ == int((y == 0).sum())

    def test_basis_fitted_on_negative_rows_only(self, shifted_dataset):
        X, y = shifted_dataset
        detector = ReconstructionAnomalyDetector(max_rank=3).fit(X, y)
        # shuffling positive rows must not change the basis
        X2 = X.copy()
        X2[y == 1] = X2[y == 1][::-1] * 10
        other = ReconstructionAnomalyDetector(max_rank=3).fit(X2, y)
        np.testing.assert_allclose(np.abs(detector.basis_), np.abs(other.basis_))

    def test_held_out_evaluation(self, shifted_dataset):
        X, y = shifted_dataset
        X_test, y_test = make_shifted_dataset(n_reference=200, n_positive=20, seed=5)
        detector = ReconstructionAnomalyDetector(max_rank=5).fit(X, y)

        scores = detector.score_samples(X_test)
        assert scores.shape == (220,)
        assert detector.evaluate(X_test, y_test) > 0.8

    def test_max_rank_above_dimension(self, shifted_dataset):
        X, y = shifted_dataset
        detector = ReconstructionAnomalyDetector(max_rank=20).fit(X, y)
        assert len(detector.auc_by_rank_) == 5

    def test_all_positive_training_labels(self, shifted_dataset):
        X, _ = shifted_dataset
        with pytest.raises(DegenerateLabelSetError):
            ReconstructionAnomalyDetector().fit(X, np.ones(len(X), dtype=int))

    def test_explained_variance_ratio(self, shifted_dataset):
        X, y = shifted_dataset
        detector = ReconstructionAnomalyDetector(method='pca').fit(X, y)
        ratio = detector.get_explained_variance_ratio()
        assert ratio.shape == (5,)
        assert ratio.sum() == pytest.approx(1.0)

    def test_failed_refit_keeps_previous_state(self, shifted_dataset):
        X, y = shifted_dataset
        detector = ReconstructionAnomalyDetector(max_rank=5).fit(X, y)
        basis, rank = detector.basis_.copy(), detector.selected_rank_
        scores = detector.score_samples(X)

        rng = np.random.default_rng(2)
        bad_labels = np.array([0] * 30 + [1] * 9 + [2])
        with pytest.raises(ValueError):
            detector.fit(rng.normal(size=(40, 3)), bad_labels)

        assert detector.basis_.shape == (5, 5)
        np.testing.assert_allclose(detector.basis_, basis)
        assert detector.selected_rank_ == rank
        np.testing.assert_allclose(detector.score_samples(X), scores)

        # rank selection fails after the new basis has been computed
        detector.max_rank = 0
        with pytest.raises(InvalidRankError):
            detector.fit(X[:, :3], y)
        assert detector.basis_.shape == (5, 5)
        assert detector.selected_rank_ == rank

    def test_plus_minus_one_labels_rejected(self, shifted_dataset):
        X, y = shifted_dataset
        with pytest.raises(ValueError, match="only 0 and 1"):
            ReconstructionAnomalyDetector().fit(X, np.where(y == 1, -1, 1))

    def test_save_and_load(self, shifted_dataset, tmp_path):
        X, y = shifted_dataset
        detector = ReconstructionAnomalyDetector(method='pca', max_rank=4).fit(X, y)
        path = tmp_path / 'detector.pkl'
        detector.save(str(path))

        loaded = ReconstructionAnomalyDetector.load(str(path))
        assert loaded.method == 'pca'
        assert loaded.max_rank == 4
        assert loaded.selected_rank_ == detector.selected_rank_
        assert not loaded.basis_.flags.writeable
        np.testing.assert_allclose(loaded.score_samples(X), detector.score_samples(X))
