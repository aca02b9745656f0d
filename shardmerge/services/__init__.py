"""Service layer for ShardMerge - merge orchestration and shard lifecycle."""

from .merge_context import MergeContext
from .merge_orchestrator import MergeOrchestrator
from .merge_target import CombinedShardResolver, find_merge_target
from .phase_executor import PhaseExecutor
from .range_validator import RangeValidator
from .shard_lifecycle import ShardStateMachine

__all__ = [
    "CombinedShardResolver",
    "MergeContext",
    "MergeOrchestrator",
    "PhaseExecutor",
    "RangeValidator",
    "ShardStateMachine",
    "find_merge_target",
]
