"""Shard model - an id range with a lifecycle state and its standby replicas."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from shardmerge.core.constants import INFINITY

if TYPE_CHECKING:
    from shardmerge.interfaces.database_node import DatabaseNode
    from shardmerge.interfaces.table_metadata import Table


class ShardState(str, Enum):
    """Lifecycle phase of a shard."""

    INITIALIZING = "initializing"
    MERGING = "merging"
    READY = "ready"
    CHILD = "child"
    NEEDS_CLEANUP = "needs_cleanup"
    READ_ONLY = "read_only"
    OFFLINE = "offline"
    DEPRECATED = "deprecated"
    DECOMMISSIONED = "decommissioned"


# States in which a shard is still advertised in the live routing configuration
ACTIVE_TOPOLOGY_STATES: frozenset[ShardState] = frozenset(
    {
        ShardState.MERGING,
        ShardState.READY,
        ShardState.CHILD,
        ShardState.NEEDS_CLEANUP,
        ShardState.READ_ONLY,
        ShardState.OFFLINE,
    }
)


class TableStatus(str, Enum):
    """Outcome of a sharding-key range check for one table."""

    VALID = "valid"
    INVALID = "invalid"


@dataclass(eq=False)
class Shard:
    """A contiguous id range [min_id, max_id] served by one pool.

    Shards compare by identity: two Shard objects with the same range are
    still different shards, and a shard never matches itself as a merge target.

    Attributes:
        min_id: Lowest id owned by the shard
        max_id: Highest id owned by the shard, or INFINITY for the last shard
        state: Current lifecycle state
        standby_slaves: Standby replicas usable for heavy queries (runtime only)
    """

    min_id: int
    max_id: int | str
    state: ShardState = ShardState.READY
    standby_slaves: list[DatabaseNode] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        self.min_id = int(self.min_id)
        if self.max_id != INFINITY:
            self.max_id = int(self.max_id)
        self.state = ShardState(self.state)

    @property
    def name(self) -> str:
        return f"shard-{self.min_id}-{str(self.max_id).lower()}"

    @property
    def is_unbounded(self) -> bool:
        """True for the last shard, whose range has no upper bound."""
        return self.max_id == INFINITY

    def contains(self, other: Shard) -> bool:
        """Check whether this shard's range fully contains another bounded range."""
        if self.is_unbounded or other.is_unbounded:
            return False
        return self.min_id <= other.min_id and self.max_id >= other.max_id

    def standby_slave(self) -> DatabaseNode | None:
        """Return the standby replica used for heavy work, if any."""
        return self.standby_slaves[-1] if self.standby_slaves else None

    def table_export_filenames(
        self,
        export_location: Path,
        tables: Sequence[Table],
        full_path: bool = True,
    ) -> list[str]:
        """Generate the list of export filenames for this shard's range.

        Args:
            export_location: Directory exports are written to on the source host
            tables: Tables being exported
            full_path: Return absolute paths when True, basenames otherwise

        Returns:
            Filenames across all tables, in table order
        """
        filenames: list[str] = []
        for table in tables:
            for filename in table.export_filenames(
                export_location, self.min_id, self.max_id
            ):
                filenames.append(str(filename) if full_path else Path(filename).name)
        return filenames

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for registry serialization."""
        return {
            "min_id": self.min_id,
            "max_id": self.max_id,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Shard:
        """Create Shard from a registry entry."""
        return cls(
            min_id=data["min_id"],
            max_id=data["max_id"],
            state=ShardState(data.get("state", ShardState.READY.value)),
        )
