"""Exception hierarchy for ShardMerge."""

from .merge import (
    MergeCancelledError,
    MergeOperationalError,
    PhaseTimeoutError,
    PreconditionError,
    RegistryError,
    ShardMergeError,
    ValidationMismatch,
)

__all__ = [
    "MergeCancelledError",
    "MergeOperationalError",
    "PhaseTimeoutError",
    "PreconditionError",
    "RegistryError",
    "ShardMergeError",
    "ValidationMismatch",
]
