"""
Stage 02 — Subspace Scoring
===========================
Runs the reconstruction-error detector once per basis method on the
partition prepared by Stage 01:

  1. SVD  – right singular vectors of the unscaled reference rows
  2. PCA  – principal axes of the standardized reference rows

For each method the basis is fitted on the negative-class training rows, the
rank is chosen by AUC on the full training partition, and both partitions are
scored at that rank. The test partition is never used for rank selection.

Reads from ``results/01_preparation/partition.npz``.

Writes:
  • ``results/02_subspace_scoring/scores_<method>_train.npy``
  • ``results/02_subspace_scoring/scores_<method>_test.npy``
  • ``results/02_subspace_scoring/detector_<method>.pkl``
  • ``results/02_subspace_scoring/auc_by_rank.csv``
  • ``results/02_subspace_scoring/method_comparison.csv``
  • ``results/02_subspace_scoring/plots/auc_by_rank.png``

Standalone usage:
    python pipeline/stage_02_subspace_scoring.py
    python pipeline/stage_02_subspace_scoring.py --methods svd --max-rank 10
    python pipeline/stage_02_subspace_scoring.py --pca-scaling minmax

As a pipeline step:
    from pipeline.stage_02_subspace_scoring import run
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
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

# ── Ensure project root is on sys.path ────────────────────────────────────────
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from src.models.reconstruction_detector import ReconstructionAnomalyDetector
from src.models.subspace_scorer import MAX_REFERENCE_CELLS
from src.preprocessing.data_loader import SCALING_BY_METHOD, scale_partitions
from pipeline.stage_01_preparation import load_partition


METHOD_LABELS = {'svd': 'SVD', 'pca': 'PCA'}


# ── Public API ─────────────────────────────────────────────────────────────────

def run(config: Optional[dict] = None) -> dict:
    """
    Execute the subspace scoring stage.

    Args:
        config: Optional dict with keys:
            ``preparation_dir``     – stage-01 output dir (default: 'results/01_preparation')
            ``output_dir``          – where to write (default: 'results/02_subspace_scoring')
            ``methods``             – any subset of ['svd', 'pca'] (default: both)
            ``max_rank``            – highest candidate rank (default: 5)
            ``svd_scaling``         – 'none' | 'standard' | 'minmax' (default: 'none')
            ``pca_scaling``         – 'none' | 'standard' | 'minmax' (default: 'standard')
            ``max_reference_cells`` – factorization size ceiling (default: 50,000,000)

    Returns:
        dict with per-method selected rank and AUCs plus artefact paths.
    """
    config = config or {}
    preparation_dir = Path(config.get('preparation_dir', 'results/01_preparation'))
    output_dir      = Path(config.get('output_dir', 'results/02_subspace_scoring'))
    methods         = config.get('methods', ['svd', 'pca'])
    max_rank        = int(config.get('max_rank', 5))
    max_cells       = int(config.get('max_reference_cells', MAX_REFERENCE_CELLS))

    unknown = [m for m in methods if m not in METHOD_LABELS]
    if unknown:
        raise ValueError(f"Unknown methods {unknown}; expected any of {list(METHOD_LABELS)}")
    scaling = {m: config.get(f'{m}_scaling', SCALING_BY_METHOD[m]) for m in methods}

    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / 'plots').mkdir(exist_ok=True)

    print("\n" + "─" * 60)
    print("STAGE 02 — SUBSPACE SCORING")
    print(f"  Methods: {methods}  (max_rank={max_rank})")
    print("─" * 60)

    t0 = time.time()

    partition = load_partition(preparation_dir)
    X_train, X_test = partition['X_train'], partition['X_test']
    y_train, y_test = partition['y_train'], partition['y_test']
    print(f"  [Scoring] Train: {X_train.shape[0]:,} × {X_train.shape[1]}  "
          f"reference rows: {int((y_train == 0).sum()):,}")
    print(f"  [Scoring] Test : {X_test.shape[0]:,} × {X_test.shape[1]}")

    method_results = {}
    for method in methods:
        method_results[method] = _run_method(
            method, X_train, X_test, y_train, y_test,
            scaling[method], max_rank, max_cells, output_dir
        )

    # ── Tables ─────────────────────────────────────────────────────────────────
    curve_df = _build_auc_curve_table(method_results)
    curve_df.to_csv(output_dir / 'auc_by_rank.csv', index=False)

    comparison_df = _build_comparison_table(method_results)
    comparison_df.to_csv(output_dir / 'method_comparison.csv', index=False)

    # ── Plots ──────────────────────────────────────────────────────────────────
    curve_plot = _plot_auc_by_rank(method_results, output_dir / 'plots')

    elapsed = time.time() - t0
    print(f"\n  [Scoring] Done in {elapsed:.1f}s  →  {output_dir}/")

    return {
        'methods_run':       methods,
        'selected_rank':     {m: r['selected_rank'] for m, r in method_results.items()},
        'train_auc':         {m: r['train_auc'] for m, r in method_results.items()},
        'test_auc':          {m: r['test_auc'] for m, r in method_results.items()},
        'auc_by_rank':       str(output_dir / 'auc_by_rank.csv'),
        'method_comparison': str(output_dir / 'method_comparison.csv'),
        'curve_plot':        curve_plot,
        'output_dir':        str(output_dir),
        'elapsed_sec':       round(elapsed, 2),
    }


# ── Method runner ──────────────────────────────────────────────────────────────

def _run_method(method, X_train, X_test, y_train, y_test,
                scaling, max_rank, max_cells, output_dir) -> dict:
    label = METHOD_LABELS[method]
    print(f"\n  ── Method: {label} (scaling={scaling}, max_rank={max_rank}) ──")
    t0 = time.time()

    X_train_s, X_test_s = scale_partitions(X_train, X_test, scaling)

    detector = ReconstructionAnomalyDetector(
        method=method,
        max_rank=max_rank,
        max_reference_cells=max_cells,
    )
    detector.fit(X_train_s, y_train)

    for rank, auc in enumerate(detector.auc_by_rank_, start=1):
        marker = '  ←' if rank == detector.selected_rank_ else ''
        print(f"        rank {rank:>3}: train AUC={auc:.4f}{marker}")

    train_scores = detector.score_samples(X_train_s)
    test_scores  = detector.score_samples(X_test_s)
    test_auc     = detector.evaluate(X_test_s, y_test)

    np.save(output_dir / f'scores_{method}_train.npy', train_scores)
    np.save(output_dir / f'scores_{method}_test.npy',  test_scores)
    detector.save(str(output_dir / f'detector_{method}.pkl'))

    elapsed = time.time() - t0
    print(f"  [{label:<4}] rank={detector.selected_rank_}  train AUC={detector.train_auc_:.4f}  "
          f"test AUC={test_auc:.4f}  [{elapsed:.1f}s]")

    return {
        'scaling':        scaling,
        'selected_rank':  detector.selected_rank_,
        'train_auc':      detector.train_auc_,
        'test_auc':       test_auc,
        'auc_by_rank':    detector.auc_by_rank_,
        'explained_var':  float(
            detector.get_explained_variance_ratio()[:detector.selected_rank_].sum()
        ),
        'n_reference':    detector.n_reference_,
        'elapsed':        elapsed,
    }


# ── Table helpers ──────────────────────────────────────────────────────────────

def _build_auc_curve_table(method_results: dict) -> pd.DataFrame:
    """Long-format AUC per (method, rank)."""
    rows = []
    for method, r in method_results.items():
        for rank, auc in enumerate(r['auc_by_rank'], start=1):
            rows.append({
                'method':    method,
                'rank':      rank,
                'train_auc': round(float(auc), 6),
                'selected':  rank == r['selected_rank'],
            })
    return pd.DataFrame(rows, columns=['method', 'rank', 'train_auc', 'selected'])


def _build_comparison_table(method_results: dict) -> pd.DataFrame:
    """High-level method comparison table."""
    rows = []
    for method, r in method_results.items():
        rows.append({
            'method':        method,
            'scaling':       r['scaling'],
            'selected_rank': r['selected_rank'],
            'train_auc':     round(r['train_auc'], 6),
            'test_auc':      round(r['test_auc'], 6),
            'explained_var': round(r['explained_var'], 4),
            'n_reference':   r['n_reference'],
            'fit_time_sec':  round(r['elapsed'], 2),
        })
    return pd.DataFrame(rows).sort_values('test_auc', ascending=False)


# ── Plot helpers ───────────────────────────────────────────────────────────────

def _plot_auc_by_rank(method_results: dict, out_dir: Path) -> str:
    fig, ax = plt.subplots(figsize=(8, 4))
    for method, r in method_results.items():
        ranks = np.arange(1, len(r['auc_by_rank']) + 1)
        ax.plot(ranks, r['auc_by_rank'], marker='o', lw=1.5, label=METHOD_LABELS[method])
        ax.scatter([r['selected_rank']], [r['train_auc']], s=120,
                   facecolors='none', edgecolors='tomato', linewidths=1.5)

    ax.set_xlabel('Rank (basis directions)', fontsize=11)
    ax.set_ylabel('Training AUC', fontsize=11)
    ax.set_title('Reconstruction-Error AUC by Rank', fontsize=12, fontweight='bold')
    ax.axhline(0.5, color='gray', linestyle='--', lw=0.8, alpha=0.5)
    ax.legend()
    plt.tight_layout()
    path = out_dir / 'auc_by_rank.png'
    fig.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return str(path)


# ── CLI entry-point ────────────────────────────────────────────────────────────

def _parse_args():
    parser = argparse.ArgumentParser(
        description='Stage 02 – Subspace Scoring'
    )
    parser.add_argument('--preparation-dir', default='results/01_preparation')
    parser.add_argument('--output-dir',      default='results/02_subspace_scoring')
    parser.add_argument('--methods',         nargs='+', default=['svd', 'pca'],
                        choices=['svd', 'pca'])
    parser.add_argument('--max-rank',        type=int, default=5,
                        help='Highest candidate rank (default: 5)')
    parser.add_argument('--svd-scaling',     default=SCALING_BY_METHOD['svd'],
                        choices=['none', 'standard', 'minmax'])
    parser.add_argument('--pca-scaling',     default=SCALING_BY_METHOD['pca'],
                        choices=['none', 'standard', 'minmax'])
    parser.add_argument('--max-reference-cells', type=int, default=MAX_REFERENCE_CELLS,
                        help='Refuse to factorize reference subsets larger than this')
    return parser.parse_args()


if __name__ == '__main__':
    args = _parse_args()
    result = run({
        'preparation_dir':     args.preparation_dir,
        'output_dir':          args.output_dir,
        'methods':             args.methods,
        'max_rank':            args.max_rank,
        'svd_scaling':         args.svd_scaling,
        'pca_scaling':         args.pca_scaling,
        'max_reference_cells': args.max_reference_cells,
    })

    print("\nSummary:")
    for m in result['methods_run']:
        print(f"  {METHOD_LABELS[m]:<4} rank={result['selected_rank'][m]}  "
              f"train AUC={result['train_auc'][m]:.4f}  test AUC={result['test_auc'][m]:.4f}")
    print(f"\n  Artefacts in: {result['output_dir']}/")
