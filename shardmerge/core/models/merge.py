"""Models describing a single merge run.

Nothing here is persisted: a merge run keeps these objects in local
collections for the duration of set_up_aggregate_node and drops them after.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shardmerge.core.models.shard import Shard
    from shardmerge.interfaces.database_node import AggregateNode, DatabaseNode
    from shardmerge.interfaces.table_metadata import Table


class MergePhase(str, Enum):
    """Phases of the aggregate node set-up, in execution order."""

    BULK_LOAD_TUNING = "bulk_load_tuning"
    SCHEMA_PROVISIONING = "schema_provisioning"
    EXPORT = "export"
    TRANSFER = "transfer"
    IMPORT = "import"
    SETTINGS_ROLLBACK = "settings_rollback"
    REPLICATION_WIRING = "replication_wiring"


@dataclass(frozen=True)
class BinlogCoordinates:
    """Binlog position at which a replica's replication was paused."""

    log_file: str
    log_pos: int

    def to_dict(self) -> dict[str, Any]:
        return {"log_file": self.log_file, "log_pos": self.log_pos}


@dataclass(frozen=True)
class MergeSource:
    """A source shard and the standby replica its data is exported from."""

    shard: Shard
    replica: DatabaseNode


@dataclass
class ExportRecord:
    """What one source replica exported, captured at its pause point.

    Attributes:
        source: Shard and replica the export ran on
        counts: Per-table export counts, injected before import for validation
        coordinates: Binlog position to attach the replica under the aggregate
    """

    source: MergeSource
    counts: dict[str, int]
    coordinates: BinlogCoordinates

    @property
    def shard(self) -> Shard:
        return self.source.shard

    @property
    def replica(self) -> DatabaseNode:
        return self.source.replica


@dataclass
class MergeResult:
    """Outcome of a successful aggregate node set-up."""

    aggregate_node: AggregateNode
    new_master: DatabaseNode
    tables: list[Table] = field(default_factory=list)
    export_records: list[ExportRecord] = field(default_factory=list)
