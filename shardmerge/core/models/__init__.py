"""Data models for shards and merge runs."""

from .merge import (
    BinlogCoordinates,
    ExportRecord,
    MergePhase,
    MergeResult,
    MergeSource,
)
from .shard import ACTIVE_TOPOLOGY_STATES, Shard, ShardState, TableStatus

__all__ = [
    "ACTIVE_TOPOLOGY_STATES",
    "BinlogCoordinates",
    "ExportRecord",
    "MergePhase",
    "MergeResult",
    "MergeSource",
    "Shard",
    "ShardState",
    "TableStatus",
]
