import numpy as np
import pandas as pd
import pytest


def make_shifted_dataset(n_reference=100, n_positive=10, offset=4.0, seed=0):
    """Anisotropic normal rows plus positives shifted along the lowest-variance feature."""
    rng = np.random.default_rng(seed)
    scales = np.array([5.0, 4.0, 3.0, 2.0, 0.5])
    reference = rng.normal(size=(n_reference, 5)) * scales
    positives = rng.normal(size=(n_positive, 5)) * scales
    positives[:, 4] += offset
    X = np.vstack([reference, positives])
    y = np.concatenate([np.zeros(n_reference, dtype=int), np.ones(n_positive, dtype=int)])
    return X, y


@pytest.fixture
def shifted_dataset():
    return make_shifted_dataset()


@pytest.fixture
def labeled_csv(tmp_path):
    X, y = make_shifted_dataset(n_reference=380, n_positive=20, seed=1)
    df = pd.DataFrame(X, columns=[f'V{i}' for i in range(1, 6)])
    df['Class'] = y
    path = tmp_path / 'transactions.csv'
    df.to_csv(path, index=False)
    return path
