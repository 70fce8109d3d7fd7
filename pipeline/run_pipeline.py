"""
Full Pipeline Orchestrator
==========================
Chains both stages end-to-end:

    Stage 01 → Data Preparation (load, stratified train/test split)
    Stage 02 → Subspace Scoring (SVD and PCA reconstruction error, rank by AUC)

Usage
─────
Run the complete pipeline:
    python pipeline/run_pipeline.py --data creditcard.csv

Only one method, wider rank search:
    python pipeline/run_pipeline.py --data creditcard.csv --methods pca --max-rank 10

Re-run scoring on an existing partition:
    python pipeline/run_pipeline.py --only-stage 02

Programmatic use:
    from pipeline.run_pipeline import run_pipeline
    results = run_pipeline({'data': 'creditcard.csv', 'max_rank': 10})
"""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

# ── Ensure project root is on sys.path ────────────────────────────────────────
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from pipeline.stage_01_preparation      import run as run_preparation
from pipeline.stage_02_subspace_scoring import run as run_scoring
from src.models.subspace_scorer import MAX_REFERENCE_CELLS
from src.preprocessing.data_loader import DEFAULT_LABEL_COL, SCALING_BY_METHOD


# ── Public API ─────────────────────────────────────────────────────────────────

def run_pipeline(config: Optional[dict] = None) -> dict:
    """
    Execute the full scoring pipeline.

    Args:
        config: Optional dict with any combination of the keys below.
            Global:
                ``data``                – path to input CSV (default: 'data.csv')
                ``only_stage``          – run only this stage, e.g. '02' (default: None)
            Stage-specific (forwarded to each stage):
                ``label_col``           – 0/1 label column (default: 'Class')
                ``feature_cols``        – feature columns (default: all numeric)
                ``test_size``           – held-out fraction (default: 0.3)
                ``random_state``        – split seed (default: 42)
                ``methods``             – basis methods (default: ['svd', 'pca'])
                ``max_rank``            – highest candidate rank (default: 5)
                ``svd_scaling``         – scaling for SVD (default: 'none')
                ``pca_scaling``         – scaling for PCA (default: 'standard')
                ``max_reference_cells`` – factorization size ceiling
            Output directories (defaults shown):
                ``preparation_dir``     → results/01_preparation
                ``scoring_dir``         → results/02_subspace_scoring

    Returns:
        dict mapping stage name → that stage's result dict.
    """
    config = config or {}
    t_total = time.time()

    # ── Resolve shared settings ────────────────────────────────────────────────
    data         = config.get('data', 'data.csv')
    only_stage   = str(config.get('only_stage', '')).zfill(2) if config.get('only_stage') else None
    label_col    = config.get('label_col', DEFAULT_LABEL_COL)
    feature_cols = config.get('feature_cols')
    test_size    = float(config.get('test_size', 0.3))
    random_state = int(config.get('random_state', 42))
    methods      = config.get('methods', ['svd', 'pca'])
    max_rank     = int(config.get('max_rank', 5))
    svd_scaling  = config.get('svd_scaling', SCALING_BY_METHOD['svd'])
    pca_scaling  = config.get('pca_scaling', SCALING_BY_METHOD['pca'])
    max_cells    = int(config.get('max_reference_cells', MAX_REFERENCE_CELLS))

    preparation_dir = config.get('preparation_dir', 'results/01_preparation')
    scoring_dir     = config.get('scoring_dir',     'results/02_subspace_scoring')

    _banner()
    results: dict = {}

    # ── Stage 01 — Preparation ─────────────────────────────────────────────────
    if _should_run('01', only_stage):
        results['01_preparation'] = run_preparation({
            'data':         data,
            'label_col':    label_col,
            'feature_cols': feature_cols,
            'test_size':    test_size,
            'random_state': random_state,
            'output_dir':   preparation_dir,
        })
    else:
        _skip('01', 'Preparation')

    # ── Stage 02 — Subspace Scoring ────────────────────────────────────────────
    if _should_run('02', only_stage):
        results['02_scoring'] = run_scoring({
            'preparation_dir':     preparation_dir,
            'output_dir':          scoring_dir,
            'methods':             methods,
            'max_rank':            max_rank,
            'svd_scaling':         svd_scaling,
            'pca_scaling':         pca_scaling,
            'max_reference_cells': max_cells,
        })
    else:
        _skip('02', 'Subspace Scoring')

    # ── Final summary ──────────────────────────────────────────────────────────
    elapsed = time.time() - t_total
    _final_summary(results, elapsed)

    return results


# ── Internal helpers ───────────────────────────────────────────────────────────

def _banner():
    print("\n" + "═" * 60)
    print("  SUBSPACE RECONSTRUCTION-ERROR SCORING PIPELINE")
    print("═" * 60)


def _should_run(stage: str, only_stage: Optional[str]) -> bool:
    if only_stage:
        return stage == only_stage
    return True


def _skip(stage: str, name: str):
    print(f"\n  [SKIPPED] Stage {stage} — {name} (--only-stage specified)")


def _final_summary(results: dict, elapsed: float):
    print("\n" + "═" * 60)
    print("  PIPELINE COMPLETE")
    print("═" * 60)

    stage_labels = {
        '01_preparation': 'Preparation',
        '02_scoring':     'Subspace Scoring',
    }

    for key, label in stage_labels.items():
        if key in results:
            t = results[key].get('elapsed_sec', '?')
            print(f"  ✓  Stage {key[:2]} — {label:<22}  ({t}s)")
        else:
            print(f"  –  Stage {key[:2]} — {label:<22}  (skipped)")

    if '01_preparation' in results:
        r = results['01_preparation']
        print(f"\n  Records processed : {r['n_records']:,}  "
              f"(train: {r['n_train']:,}, test: {r['n_test']:,})")

    if '02_scoring' in results:
        r = results['02_scoring']
        for m in r['methods_run']:
            print(f"  {m.upper():<4} rank={r['selected_rank'][m]:<3} "
                  f"train AUC={r['train_auc'][m]:.4f}  test AUC={r['test_auc'][m]:.4f}")

    print(f"\n  Total elapsed     : {elapsed:.1f}s")
    print("═" * 60 + "\n")


# ── CLI entry-point ────────────────────────────────────────────────────────────

def _parse_args():
    parser = argparse.ArgumentParser(
        description='Subspace Reconstruction-Error Scoring Pipeline',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run complete pipeline
  python pipeline/run_pipeline.py --data creditcard.csv

  # Only rescore an existing partition
  python pipeline/run_pipeline.py --only-stage 02

  # Custom settings
  python pipeline/run_pipeline.py --data creditcard.csv --methods svd --max-rank 12
        """
    )
    parser.add_argument('--data',          default='data.csv')
    parser.add_argument('--only-stage',    type=str, default=None,
                        help='Run only this stage number (01–02), e.g. --only-stage 02')
    parser.add_argument('--label-col',     default=DEFAULT_LABEL_COL)
    parser.add_argument('--test-size',     type=float, default=0.3)
    parser.add_argument('--random-state',  type=int,   default=42)
    parser.add_argument('--methods',       nargs='+', default=['svd', 'pca'],
                        choices=['svd', 'pca'],
                        help='Basis methods to run (default: both)')
    parser.add_argument('--max-rank',      type=int,   default=5)
    parser.add_argument('--svd-scaling',   default=SCALING_BY_METHOD['svd'],
                        choices=['none', 'standard', 'minmax'])
    parser.add_argument('--pca-scaling',   default=SCALING_BY_METHOD['pca'],
                        choices=['none', 'standard', 'minmax'])
    parser.add_argument('--max-reference-cells', type=int, default=MAX_REFERENCE_CELLS)
    return parser.parse_args()


if __name__ == '__main__':
    args = _parse_args()
    run_pipeline({
        'data':                args.data,
        'only_stage':          args.only_stage,
        'label_col':           args.label_col,
        'test_size':           args.test_size,
        'random_state':        args.random_state,
        'methods':             args.methods,
        'max_rank':            args.max_rank,
        'svd_scaling':         args.svd_scaling,
        'pca_scaling':         args.pca_scaling,
        'max_reference_cells': args.max_reference_cells,
    })
