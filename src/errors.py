"""
Exceptions raised by the subspace reconstruction scorer and AUC evaluator.
"""


class SubspaceScoringError(ValueError):
    """Base class for scoring contract violations."""


class DegenerateLabelSetError(SubspaceScoringError):
    """Labels contain a single class, so AUC is undefined."""

    def __init__(self, n_pos: int, n_neg: int):
        self.n_pos = n_pos
        self.n_neg = n_neg
        super().__init__(
            f"AUC is undefined with {n_pos} positive and {n_neg} negative labels; "
            f"both classes must be present."
        )


class EmptyReferenceSetError(SubspaceScoringError):
    """The reference subset has no rows to factorize."""


class InvalidRankError(SubspaceScoringError):
    """Requested rank is outside 1..basis dimensionality."""

    def __init__(self, rank: int, max_rank: int):
        self.rank = rank
        self.max_rank = max_rank
        super().__init__(f"Rank must be in [1, {max_rank}], got {rank}.")


class DimensionMismatchError(SubspaceScoringError):
    """Aligned structures disagree in shape."""


class ReferenceSetTooLargeError(SubspaceScoringError, MemoryError):
    """Reference subset exceeds the configured factorization ceiling."""
