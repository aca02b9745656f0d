"""DatabaseNode protocols - the node operations a merge run relies on.

Implementations wrap a MySQL host: SQL execution, process restarts, replication
control and the export/import tooling. They are expected to block until the
remote operation finishes and to raise on failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shardmerge.core.models.merge import BinlogCoordinates
    from shardmerge.core.models.shard import Shard
    from shardmerge.interfaces.table_metadata import Table


@runtime_checkable
class DatabaseNode(Protocol):
    """A single MySQL node (master, standby slave or fresh host)."""

    @property
    def name(self) -> str:
        """Human-readable identifier used in logs and errors."""
        ...

    @property
    def pool(self) -> Shard | None:
        """Shard this node belongs to, or None for an unassigned node."""
        ...

    # Queries and process control
    def query_return_array(self, sql: str) -> list[dict[str, Any]]:
        """Run a query and return its rows as dictionaries."""
        ...

    def restart_mysql(self, *options: str) -> None:
        """Restart mysqld with the given command-line options."""
        ...

    def ssh_cmd(self, command: str) -> str:
        """Run a shell command on the node's host."""
        ...

    # Schema and data movement
    def ship_schema_to(self, node: DatabaseNode) -> None:
        """Dump this node's schema and copy it to another node."""
        ...

    def import_schemata(self) -> None:
        """Load a previously shipped schema dump."""
        ...

    def export_data(
        self, tables: Sequence[Table], min_id: int, max_id: int | str
    ) -> None:
        """Export the given tables restricted to an id range."""
        ...

    def import_data(
        self, tables: Sequence[Table], min_id: int, max_id: int | str
    ) -> None:
        """Import previously exported data for an id range."""
        ...

    def import_export_counts(self) -> dict[str, int]:
        """Per-table row counts from the last export."""
        ...

    def inject_counts(self, counts: dict[str, int]) -> None:
        """Set the counts the next import must reproduce."""
        ...

    # Replication
    def binlog_coordinates(self) -> tuple[str, int]:
        """Current (log_file, log_pos) of this node's binary log."""
        ...

    def pause_replication(self) -> None: ...

    def resume_replication(self) -> None: ...

    def catch_up_to_master(self) -> None:
        """Block until replication lag reaches zero."""
        ...

    def change_master_to(self, node: DatabaseNode) -> None:
        """Replicate from another node."""
        ...

    # Safeguards
    def disable_monitoring(self) -> None: ...

    def enable_monitoring(self) -> None: ...

    def stop_query_killer(self) -> None: ...

    def start_query_killer(self) -> None: ...


@runtime_checkable
class AggregateNode(DatabaseNode, Protocol):
    """A node that accepts multi-source replication from several upstreams."""

    @property
    def aggregator(self) -> bool:
        """True when the node supports multi-source aggregation."""
        ...

    @property
    def aggregating_nodes(self) -> list[DatabaseNode]:
        """Nodes currently replicating into this aggregate."""
        ...

    def add_node_to_aggregate(
        self, node: DatabaseNode, coordinates: BinlogCoordinates
    ) -> None:
        """Attach a node as a replication source starting at coordinates."""
        ...

