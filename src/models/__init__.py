from .subspace_scorer import (
    ProjectedEnergyAccumulator,
    fit_basis,
    projected_energy_at_rank,
    rank_auc_curve,
    residual_scores,
    row_norms,
    select_rank,
)
from .reconstruction_detector import ReconstructionAnomalyDetector

__all__ = [
    'ProjectedEnergyAccumulator',
    'ReconstructionAnomalyDetector',
    'fit_basis',
    'projected_energy_at_rank',
    'rank_auc_curve',
    'residual_scores',
    'row_norms',
    'select_rank',
]
