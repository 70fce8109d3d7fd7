"""
Subspace reconstruction scoring.

A basis is fitted on a reference subset (normal rows only). Any row is then
scored by the energy it leaves outside the span of the first N basis
directions:

    residual(x, N) = ||x||^2 - sum_{i<N} (x . v_i)^2

The rank N is chosen by AUC on a designated evaluation partition.
"""
import numpy as np
from sklearn.decomposition import PCA
from typing import Optional, Tuple

from src.errors import (
    DegenerateLabelSetError,
    DimensionMismatchError,
    EmptyReferenceSetError,
    InvalidRankError,
    ReferenceSetTooLargeError,
)
from src.metrics.auc import roc_auc_rank_sum


# Upper bound on reference rows x columns handed to the factorization
MAX_REFERENCE_CELLS = 50_000_000

FIT_METHODS = ('svd', 'pca')


def _as_matrix(X, name: str = 'matrix') -> np.ndarray:
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise DimensionMismatchError(f"{name} must be 2-D, got shape {X.shape}.")
    return X


def _check_basis(X: np.ndarray, basis: np.ndarray) -> None:
    if basis.ndim != 2:
        raise DimensionMismatchError(f"basis must be 2-D, got shape {basis.shape}.")
    if X.shape[1] != basis.shape[0]:
        raise DimensionMismatchError(
            f"matrix has {X.shape[1]} columns but basis directions have "
            f"{basis.shape[0]} dimensions."
        )


def _check_rank(rank: int, basis: np.ndarray) -> None:
    if rank < 1 or rank > basis.shape[1]:
        raise InvalidRankError(rank, basis.shape[1])


def _check_labels(X: np.ndarray, labels) -> np.ndarray:
    y = np.asarray(labels).ravel()
    if y.shape[0] != X.shape[0]:
        raise DimensionMismatchError(
            f"matrix has {X.shape[0]} rows but labels has {y.shape[0]}."
        )
    if not np.isin(y, (0, 1)).all():
        raise ValueError("labels must contain only 0 and 1.")
    n_pos = int((y == 1).sum())
    n_neg = int((y == 0).sum())
    if n_pos == 0 or n_neg == 0:
        raise DegenerateLabelSetError(n_pos, n_neg)
    return y


# ── Basis fitting ──────────────────────────────────────────────────────────────

def fit_basis_with_spectrum(
    reference_matrix,
    method: str = 'svd',
    max_reference_cells: int = MAX_REFERENCE_CELLS,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Factorize the reference subset and return its feature-space basis.

    Args:
        reference_matrix: Reference rows, shape (n_reference, n_features)
        method: 'svd' (right singular vectors of the matrix as given) or
            'pca' (principal axes, i.e. singular vectors after centering)
        max_reference_cells: Refuse to factorize above this many cells

    Returns:
        Tuple of (basis, singular values, explained variance ratio). The basis
        has shape (n_features, min(n_reference, n_features)); its columns are
        orthonormal and ordered by decreasing singular value. It is read-only.
    """
    if method not in FIT_METHODS:
        raise ValueError(f"method must be one of {FIT_METHODS}, got {method!r}.")

    R = _as_matrix(reference_matrix, 'reference_matrix')
    n_rows, n_cols = R.shape
    if n_rows == 0:
        raise EmptyReferenceSetError("Reference subset has no rows; cannot fit a basis.")
    if n_cols == 0:
        raise DimensionMismatchError("Reference subset has no columns.")
    if n_rows * n_cols > max_reference_cells:
        raise ReferenceSetTooLargeError(
            f"Reference subset is {n_rows:,} x {n_cols:,} = {n_rows * n_cols:,} cells, "
            f"above the limit of {max_reference_cells:,}. Subsample the reference rows."
        )

    if method == 'svd':
        _, singular_values, vt = np.linalg.svd(R, full_matrices=False)
        basis = vt.T
        energy = singular_values ** 2
        total = energy.sum()
        explained = energy / total if total > 0 else np.zeros_like(energy)
    else:
        pca = PCA(svd_solver='full')
        pca.fit(R)
        basis = pca.components_.T
        singular_values = pca.singular_values_
        if n_rows > 1:
            explained = pca.explained_variance_ratio_
        else:
            explained = np.zeros_like(singular_values)

    basis = np.ascontiguousarray(basis, dtype=np.float64)
    basis.setflags(write=False)
    return basis, np.asarray(singular_values), np.asarray(explained)


def fit_basis(
    reference_matrix,
    method: str = 'svd',
    max_reference_cells: int = MAX_REFERENCE_CELLS,
) -> np.ndarray:
    """Fit an orthonormal basis on the reference subset (see fit_basis_with_spectrum)."""
    basis, _, _ = fit_basis_with_spectrum(reference_matrix, method, max_reference_cells)
    return basis


# ── Scoring ────────────────────────────────────────────────────────────────────

def row_norms(matrix) -> np.ndarray:
    """Sum of squared entries of each row."""
    X = _as_matrix(matrix)
    return np.einsum('ij,ij->i', X, X)


class ProjectedEnergyAccumulator:
    """
    Cumulative projected energy of a fixed matrix, one basis direction at a time.

    Energies already accumulated are memoized, so asking for rank N after
    rank N-1 costs a single additional projection.
    """

    def __init__(self, matrix, basis: np.ndarray):
        self.matrix = _as_matrix(matrix)
        self.basis = np.asarray(basis, dtype=np.float64)
        _check_basis(self.matrix, self.basis)

        self.norms = row_norms(self.matrix)
        self._energy = np.zeros(self.matrix.shape[0], dtype=np.float64)
        self._history = []

    @property
    def rank(self) -> int:
        """Number of directions accumulated so far."""
        return len(self._history)

    @property
    def max_rank(self) -> int:
        return self.basis.shape[1]

    def advance(self) -> np.ndarray:
        """Add the next basis direction and return the updated energy."""
        if self.rank >= self.max_rank:
            raise InvalidRankError(self.rank + 1, self.max_rank)
        projection = self.matrix @ self.basis[:, self.rank]
        self._energy = self._energy + projection ** 2
        self._energy.setflags(write=False)
        self._history.append(self._energy)
        return self._energy

    def energy_at_rank(self, rank: int) -> np.ndarray:
        _check_rank(rank, self.basis)
        while self.rank < rank:
            self.advance()
        return self._history[rank - 1]

    def residual_at_rank(self, rank: int) -> np.ndarray:
        return self.norms - self.energy_at_rank(rank)


def projected_energy_at_rank(matrix, basis: np.ndarray, rank: int) -> np.ndarray:
    """Squared length of each row's projection onto the first ``rank`` directions."""
    return ProjectedEnergyAccumulator(matrix, basis).energy_at_rank(rank).copy()


def residual_scores(matrix, basis: np.ndarray, rank: int) -> np.ndarray:
    """
    Reconstruction-error score per row at a fixed rank.

    Higher means the row is less well explained by the reference subspace.
    """
    return ProjectedEnergyAccumulator(matrix, basis).residual_at_rank(rank)


# ── Rank selection ─────────────────────────────────────────────────────────────

def rank_auc_curve(eval_matrix, eval_labels, basis: np.ndarray, max_rank: int) -> np.ndarray:
    """
    AUC of the residual score for every candidate rank.

    Returns:
        Array whose entry i is the AUC at rank i + 1, for ranks
        1..min(max_rank, basis dimensionality).
    """
    X = _as_matrix(eval_matrix, 'eval_matrix')
    y = _check_labels(X, eval_labels)
    accumulator = ProjectedEnergyAccumulator(X, basis)
    if max_rank < 1:
        raise InvalidRankError(max_rank, accumulator.max_rank)

    n_ranks = min(max_rank, accumulator.max_rank)
    return np.array([
        roc_auc_rank_sum(y, accumulator.residual_at_rank(rank))
        for rank in range(1, n_ranks + 1)
    ])


def select_rank(
    eval_matrix,
    eval_labels,
    basis: np.ndarray,
    max_rank: int,
    auc_curve: Optional[np.ndarray] = None,
) -> int:
    """
    Pick the rank whose residual score has the highest AUC on the evaluation rows.

    Ties go to the smallest rank: a later rank replaces the current best only
    when its AUC is strictly greater.

    Args:
        eval_matrix: Rows designated for rank selection
        eval_labels: 0/1 labels aligned with ``eval_matrix``
        basis: Basis from fit_basis
        max_rank: Highest rank to consider (capped at the basis dimensionality)
        auc_curve: Precomputed output of rank_auc_curve for the same inputs

    Returns:
        Selected rank N*, 1-based.
    """
    if auc_curve is None:
        auc_curve = rank_auc_curve(eval_matrix, eval_labels, basis, max_rank)
    else:
        X = _as_matrix(eval_matrix, 'eval_matrix')
        _check_labels(X, eval_labels)
        basis = np.asarray(basis, dtype=np.float64)
        _check_basis(X, basis)
        if max_rank < 1:
            raise InvalidRankError(max_rank, basis.shape[1])
        expected = min(max_rank, basis.shape[1])
        if len(auc_curve) != expected:
            raise DimensionMismatchError(
                f"auc_curve has {len(auc_curve)} entries, expected {expected}."
            )

    if len(auc_curve) == 0:
        raise InvalidRankError(1, 0)

    best_rank, best_auc = 1, auc_curve[0]
    for rank, auc in enumerate(auc_curve[1:], start=2):
        if auc > best_auc:
            best_rank, best_auc = rank, auc
    return best_rank
