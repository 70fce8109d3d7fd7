"""
Subspace Reconstruction-Error Scoring Pipeline package.

Stages
──────
01 – Data Preparation  (pipeline.stage_01_preparation)
02 – Subspace Scoring  (pipeline.stage_02_subspace_scoring)

Orchestrator
────────────
    from pipeline.run_pipeline import run_pipeline
    results = run_pipeline({'data': 'creditcard.csv'})
"""
from .run_pipeline import run_pipeline

__all__ = ['run_pipeline']
