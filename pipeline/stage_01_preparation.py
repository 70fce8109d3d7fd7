"""
Stage 01 — Data Preparation
===========================
Loads the labeled CSV, drops rows with missing values and splits the
remaining rows into a stratified training and held-out test partition.
Scaling is left to Stage 02 because each basis method uses its own policy.

Writes:
  • ``results/01_preparation/partition.npz``          – X_train, X_test, y_train, y_test
  • ``results/01_preparation/feature_cols.csv``       – ordered feature names
  • ``results/01_preparation/preparation_report.csv`` – row / class counts

Standalone usage:
    python pipeline/stage_01_preparation.py --data creditcard.csv
    python pipeline/stage_01_preparation.py --data creditcard.csv --label-col Class --test-size 0.3

As a pipeline step:
    from pipeline.stage_01_preparation import run
    result = run(config)
"""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

# ── Ensure project root is on sys.path ────────────────────────────────────────
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from src.preprocessing.data_loader import (
    DEFAULT_LABEL_COL,
    load_design_matrix,
    split_partitions,
)


# ── Public API ─────────────────────────────────────────────────────────────────

def run(config: Optional[dict] = None) -> dict:
    """
    Execute the data preparation stage.

    Args:
        config: Optional dict with keys:
            ``data``         – path to input CSV (default: 'data.csv')
            ``label_col``    – 0/1 label column (default: 'Class')
            ``feature_cols`` – feature columns (default: all other numeric columns)
            ``test_size``    – held-out fraction (default: 0.3)
            ``random_state`` – split seed (default: 42)
            ``output_dir``   – where to write (default: 'results/01_preparation')

    Returns:
        dict with keys: n_records, n_train, n_test, n_positive_train,
        n_positive_test, feature_cols, partition_npz, output_dir.
    """
    config = config or {}
    data_path    = config.get('data', 'data.csv')
    label_col    = config.get('label_col', DEFAULT_LABEL_COL)
    feature_cols = config.get('feature_cols')
    test_size    = float(config.get('test_size', 0.3))
    random_state = int(config.get('random_state', 42))
    output_dir   = Path(config.get('output_dir', 'results/01_preparation'))
    output_dir.mkdir(parents=True, exist_ok=True)

    print("\n" + "─" * 60)
    print("STAGE 01 — DATA PREPARATION")
    print("─" * 60)

    t0 = time.time()

    if not Path(data_path).exists():
        raise FileNotFoundError(f"Input data not found: {data_path}")

    # ── Load ───────────────────────────────────────────────────────────────────
    print(f"  [Preparation] Loading {data_path} …")
    X, y, feature_cols = load_design_matrix(data_path, label_col, feature_cols)
    n_records = len(y)
    print(f"  [Preparation] {n_records:,} records × {len(feature_cols)} features, "
          f"{int(y.sum()):,} positive ({y.mean() * 100:.3f}%)")

    # ── Split ──────────────────────────────────────────────────────────────────
    X_train, X_test, y_train, y_test = split_partitions(X, y, test_size, random_state)
    print(f"  [Preparation] Train: {len(y_train):,} rows ({int(y_train.sum()):,} positive)")
    print(f"  [Preparation] Test : {len(y_test):,} rows ({int(y_test.sum()):,} positive)")

    # ── Save artefacts ─────────────────────────────────────────────────────────
    partition_npz = output_dir / 'partition.npz'
    np.savez(partition_npz, X_train=X_train, X_test=X_test, y_train=y_train, y_test=y_test)
    pd.DataFrame({'feature': feature_cols}).to_csv(output_dir / 'feature_cols.csv', index=False)

    pd.DataFrame([
        {'metric': 'total_records',    'value': n_records},
        {'metric': 'train_records',    'value': len(y_train)},
        {'metric': 'test_records',     'value': len(y_test)},
        {'metric': 'positive_train',   'value': int(y_train.sum())},
        {'metric': 'positive_test',    'value': int(y_test.sum())},
        {'metric': 'n_features',       'value': len(feature_cols)},
    ]).to_csv(output_dir / 'preparation_report.csv', index=False)

    elapsed = time.time() - t0
    print(f"  [Preparation] Done in {elapsed:.1f}s  →  {output_dir}/")

    return {
        'n_records':        n_records,
        'n_train':          len(y_train),
        'n_test':           len(y_test),
        'n_positive_train': int(y_train.sum()),
        'n_positive_test':  int(y_test.sum()),
        'feature_cols':     feature_cols,
        'partition_npz':    str(partition_npz),
        'output_dir':       str(output_dir),
        'elapsed_sec':      round(elapsed, 2),
    }


def load_partition(preparation_dir) -> dict:
    """Load the train/test partition written by ``run``."""
    npz_path = Path(preparation_dir) / 'partition.npz'
    if not npz_path.exists():
        raise FileNotFoundError(
            f"{npz_path} not found. Run stage 01 first:\n"
            f"  python pipeline/stage_01_preparation.py --data <csv>"
        )
    with np.load(npz_path) as data:
        partition = {key: data[key] for key in ('X_train', 'X_test', 'y_train', 'y_test')}

    features_csv = Path(preparation_dir) / 'feature_cols.csv'
    if features_csv.exists():
        partition['feature_cols'] = pd.read_csv(features_csv)['feature'].tolist()
    return partition


# ── CLI entry-point ────────────────────────────────────────────────────────────

def _parse_args():
    parser = argparse.ArgumentParser(
        description='Stage 01 – Data Preparation'
    )
    parser.add_argument('--data',         default='data.csv',
                        help='Path to input CSV (default: data.csv)')
    parser.add_argument('--label-col',    default=DEFAULT_LABEL_COL,
                        help='0/1 label column (default: Class)')
    parser.add_argument('--test-size',    type=float, default=0.3)
    parser.add_argument('--random-state', type=int,   default=42)
    parser.add_argument('--output-dir',   default='results/01_preparation',
                        help='Output directory (default: results/01_preparation)')
    return parser.parse_args()


if __name__ == '__main__':
    args = _parse_args()
    result = run({
        'data':         args.data,
        'label_col':    args.label_col,
        'test_size':    args.test_size,
        'random_state': args.random_state,
        'output_dir':   args.output_dir,
    })

    print("\nSummary:")
    print(f"  Total records : {result['n_records']:,}")
    print(f"  Train / test  : {result['n_train']:,} / {result['n_test']:,}")
    print(f"  Features      : {result['feature_cols']}")
    print(f"\n  Artefacts in: {result['output_dir']}/")
