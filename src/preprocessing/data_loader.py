"""
Data loading and preprocessing for reconstruction-error scoring.
"""
import pandas as pd
import numpy as np
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import MinMaxScaler, StandardScaler
from typing import Tuple, List, Optional

from src.errors import DimensionMismatchError


DEFAULT_LABEL_COL = 'Class'

# Scaling policy per basis method
SCALING_BY_METHOD = {
    'svd': 'none',
    'pca': 'standard',
}

SCALERS = {
    'standard': StandardScaler,
    'minmax': MinMaxScaler,
}


def load_design_matrix(
    filepath: str,
    label_col: str = DEFAULT_LABEL_COL,
    feature_cols: Optional[List[str]] = None
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Load a labeled numeric table.

    Args:
        filepath: Path to the CSV file
        label_col: Name of the 0/1 label column
        feature_cols: Feature columns to use (default: every other numeric column)

    Returns:
        Tuple of (feature matrix, labels, feature column names)
    """
    df = pd.read_csv(filepath)
    if label_col not in df.columns:
        raise KeyError(f"Label column {label_col!r} not found in {filepath}")

    if feature_cols is None:
        feature_cols = [
            c for c in df.select_dtypes(include='number').columns if c != label_col
        ]

    # Drop rows with any missing feature or label
    df = df[feature_cols + [label_col]].dropna().reset_index(drop=True)

    X = df[feature_cols].to_numpy(dtype=np.float64)
    y = df[label_col].to_numpy().astype(int)
    if not np.isin(y, (0, 1)).all():
        raise ValueError(f"Label column {label_col!r} must contain only 0 and 1.")

    return X, y, list(feature_cols)


def split_partitions(
    X: np.ndarray,
    y: np.ndarray,
    test_size: float = 0.3,
    random_state: int = 42
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Stratified train/test split.

    Returns:
        Tuple of (X_train, X_test, y_train, y_test)
    """
    if len(X) != len(y):
        raise DimensionMismatchError(f"X has {len(X)} rows but y has {len(y)}.")
    return train_test_split(
        X, y, test_size=test_size, random_state=random_state, stratify=y
    )


def scale_partitions(
    X_train: np.ndarray,
    X_test: np.ndarray,
    scaling: str = 'none'
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Scale both partitions with a scaler fitted on the training partition.

    Args:
        X_train: Training partition
        X_test: Held-out partition
        scaling: 'none', 'standard' or 'minmax'

    Returns:
        Tuple of (scaled train, scaled test)
    """
    if scaling == 'none':
        return X_train, X_test
    if scaling not in SCALERS:
        raise ValueError(f"Unknown scaling {scaling!r}; expected 'none' or one of {list(SCALERS)}")

    scaler = SCALERS[scaling]()
    return scaler.fit_transform(X_train), scaler.transform(X_test)


def reference_mask(y: np.ndarray) -> np.ndarray:
    """Boolean mask of negative-class (reference) rows."""
    return np.asarray(y) == 0
