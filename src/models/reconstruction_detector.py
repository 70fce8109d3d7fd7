"""
Reconstruction-error anomaly detector with AUC-driven rank selection.
"""
import numpy as np
from typing import Optional
import joblib

from src.metrics.auc import roc_auc_rank_sum
from src.preprocessing.data_loader import reference_mask
from .subspace_scorer import (
    MAX_REFERENCE_CELLS,
    fit_basis_with_spectrum,
    rank_auc_curve,
    residual_scores,
    select_rank,
    _as_matrix,
    _check_labels,
)


class ReconstructionAnomalyDetector:
    """
    Anomaly detector using subspace reconstruction error.

    Anomalies are detected by:
    1. Fitting an orthonormal basis on the negative-class training rows
    2. Scoring every training row by residual energy at ranks 1..max_rank
    3. Keeping the rank with the best training AUC (smallest rank on ties)
    4. Scoring new rows by residual energy at that rank
    """

    def __init__(
        self,
        method: str = 'svd',
        max_rank: int = 5,
        max_reference_cells: int = MAX_REFERENCE_CELLS,
    ):
        """
        Initialize detector.

        Args:
            method: Basis factorization, 'svd' or 'pca'
            max_rank: Highest rank considered during selection
            max_reference_cells: Size ceiling for the reference subset
        """
        self.method = method
        self.max_rank = max_rank
        self.max_reference_cells = max_reference_cells

        self.basis_: Optional[np.ndarray] = None
        self.singular_values_: Optional[np.ndarray] = None
        self.explained_variance_ratio_: Optional[np.ndarray] = None
        self.auc_by_rank_: Optional[np.ndarray] = None
        self.selected_rank_: Optional[int] = None
        self.train_auc_: Optional[float] = None
        self.n_reference_: Optional[int] = None
        self._is_fitted = False

    def fit(self, X: np.ndarray, y: np.ndarray) -> 'ReconstructionAnomalyDetector':
        """
        Fit the basis on the reference subset and select the rank.

        The basis sees only rows with ``y == 0``; rank selection uses every
        row of ``X`` with its label.

        Args:
            X: Training partition, shape (n_samples, n_features)
            y: 0/1 labels aligned with ``X``

        Returns:
            self
        """
        X = _as_matrix(X, 'X')
        y = _check_labels(X, y)

        # Nothing is assigned to self until every step has succeeded
        reference = X[reference_mask(y)]
        basis, singular_values, explained = fit_basis_with_spectrum(
            reference, self.method, self.max_reference_cells
        )
        auc_curve = rank_auc_curve(X, y, basis, self.max_rank)
        rank = select_rank(X, y, basis, self.max_rank, auc_curve=auc_curve)

        self.basis_ = basis
        self.singular_values_ = singular_values
        self.explained_variance_ratio_ = explained
        self.n_reference_ = reference.shape[0]
        self.auc_by_rank_ = auc_curve
        self.selected_rank_ = rank
        self.train_auc_ = float(auc_curve[rank - 1])
        self._is_fitted = True

        return self

    def score_samples(self, X: np.ndarray) -> np.ndarray:
        """
        Compute anomaly scores (residual energy at the selected rank).

        Args:
            X: Data to score, preprocessed like the training partition

        Returns:
            Array of residual scores (higher = more anomalous)
        """
        if not self._is_fitted:
            raise ValueError("Model not fitted. Call fit() first.")
        return residual_scores(X, self.basis_, self.selected_rank_)

    def evaluate(self, X: np.ndarray, y: np.ndarray) -> float:
        """AUC of the anomaly score on a labeled partition."""
        scores = self.score_samples(X)
        return roc_auc_rank_sum(y, scores)

    def get_explained_variance_ratio(self) -> np.ndarray:
        """Get explained variance ratio for each basis direction."""
        if not self._is_fitted:
            raise ValueError("Model not fitted. Call fit() first.")
        return self.explained_variance_ratio_

    def save(self, filepath: str) -> None:
        """Save model to disk."""
        joblib.dump({
            'basis': np.array(self.basis_),
            'singular_values': self.singular_values_,
            'explained_variance_ratio': self.explained_variance_ratio_,
            'auc_by_rank': self.auc_by_rank_,
            'selected_rank': self.selected_rank_,
            'train_auc': self.train_auc_,
            'n_reference': self.n_reference_,
            'method': self.method,
            'max_rank': self.max_rank,
            'max_reference_cells': self.max_reference_cells,
        }, filepath)

    @classmethod
    def load(cls, filepath: str) -> 'ReconstructionAnomalyDetector':
        """Load model from disk."""
        data = joblib.load(filepath)
        detector = cls(
            method=data['method'],
            max_rank=data['max_rank'],
            max_reference_cells=data['max_reference_cells'],
        )
        detector.basis_ = data['basis']
        detector.basis_.setflags(write=False)
        detector.singular_values_ = data['singular_values']
        detector.explained_variance_ratio_ = data['explained_variance_ratio']
        detector.auc_by_rank_ = data['auc_by_rank']
        detector.selected_rank_ = data['selected_rank']
        detector.train_auc_ = data['train_auc']
        detector.n_reference_ = data['n_reference']
        detector._is_fitted = True
        return detector
