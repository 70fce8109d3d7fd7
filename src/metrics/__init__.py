from .auc import roc_auc_rank_sum

__all__ = ['roc_auc_rank_sum']
