"""
Rank-sum (Mann-Whitney) AUC for continuous scores and binary labels.
"""
import numpy as np
import pandas as pd

from src.errors import DegenerateLabelSetError, DimensionMismatchError


def roc_auc_rank_sum(labels, scores) -> float:
    """
    Area under the ROC curve via the rank-sum formulation.

    Tied scores share the average of their ranks, so a tied
    positive/negative pair contributes exactly 0.5.

    Args:
        labels: 1-D array of 0/1 labels (1 = positive / rare class)
        scores: 1-D array of scores aligned with ``labels``

    Returns:
        Probability that a random positive outscores a random negative.

    Raises:
        DegenerateLabelSetError: if either class is absent
        DimensionMismatchError: if ``labels`` and ``scores`` differ in length
    """
    y = np.asarray(labels).ravel()
    s = np.asarray(scores, dtype=np.float64).ravel()

    if y.shape[0] != s.shape[0]:
        raise DimensionMismatchError(
            f"labels has {y.shape[0]} rows but scores has {s.shape[0]}."
        )
    if not np.isin(y, (0, 1)).all():
        raise ValueError("labels must contain only 0 and 1.")
    if not np.isfinite(s).all():
        raise ValueError("scores must be finite.")

    positive = y == 1
    n_pos = int(positive.sum())
    n_neg = int(y.shape[0] - n_pos)
    if n_pos == 0 or n_neg == 0:
        raise DegenerateLabelSetError(n_pos, n_neg)

    ranks = pd.Series(s).rank(method='average').to_numpy()
    rank_sum = ranks[positive].sum()
    return float((rank_sum - n_pos * (n_pos + 1) / 2.0) / (n_pos * n_neg))
