"""Table metadata protocols - sharded tables and merge table sets."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class Table(Protocol):
    """A sharded table known to the table metadata model."""

    @property
    def name(self) -> str: ...

    @property
    def sharding_keys(self) -> list[str]:
        """Columns whose values determine shard placement."""
        ...

    def sql_range_check(self, column: str, min_id: int, max_id: int | str) -> str:
        """Build a query counting rows whose column falls outside [min_id, max_id]."""
        ...

    def export_filenames(
        self, export_location: Path, min_id: int, max_id: int | str
    ) -> list[Path]:
        """Paths the export of this table for an id range is written to."""
        ...


class ShardedTableProvider(Protocol):
    """Source of the full sharded table list."""

    def sharded_tables(self) -> list[Table]: ...


class MergeTableProvider(Protocol):
    """Source of the tables designated for a merge.

    May return a subset of the sharded tables.
    """

    def tables_to_merge(self) -> list[Table]: ...
