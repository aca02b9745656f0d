"""Sharding-key range validation against live standby replicas.

Every sharded table is checked column by column for rows whose sharding key
falls outside the shard's [min_id, max_id] range. Checks run on a standby
replica, never the master, because the queries are heavy and the shard is
serving production traffic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from shardmerge.core.constants import DEFAULT_VALIDATION_CONCURRENCY
from shardmerge.core.exceptions.merge import MergeOperationalError, PreconditionError
from shardmerge.core.models.shard import Shard, TableStatus
from shardmerge.services.phase_executor import PhaseExecutor

if TYPE_CHECKING:
    from shardmerge.interfaces.database_node import DatabaseNode
    from shardmerge.interfaces.table_metadata import ShardedTableProvider, Table

VALIDATION_PHASE = "validation"


@dataclass(frozen=True)
class RangeCheck:
    """One (table, sharding key column) pair to check."""

    table: Table
    column: str

    @property
    def name(self) -> str:
        return f"{self.table.name}.{self.column}"


def _out_of_range_count(rows: list[dict]) -> int:
    """Extract the count from the first column of the first row."""
    if not rows:
        raise MergeOperationalError("Range check returned no rows", phase=VALIDATION_PHASE)
    first_row = rows[0]
    return int(next(iter(first_row.values())))


class RangeValidator:
    """Checks that no row on a shard violates its sharding-key boundaries."""

    def __init__(
        self,
        table_provider: ShardedTableProvider,
        max_concurrency: int = DEFAULT_VALIDATION_CONCURRENCY,
        executor: PhaseExecutor | None = None,
    ) -> None:
        """Initialize range validator.

        Args:
            table_provider: Source of the sharded table list
            max_concurrency: Maximum in-flight checks against the replica
            executor: Phase executor (timeouts/cancellation); a default one
                without timeout is used if omitted
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.table_provider = table_provider
        self.max_concurrency = max_concurrency
        self.executor = executor or PhaseExecutor()

    def validate(self, shard: Shard) -> dict[str, TableStatus]:
        """Validate sharding-key ranges for every sharded table.

        A table is invalid if ANY of its sharding-key columns has rows outside
        the shard's range.

        Args:
            shard: Shard to validate; its last standby slave is queried

        Returns:
            Mapping of table name to TableStatus

        Raises:
            PreconditionError: If the shard has no standby slave
            MergeOperationalError: If a range check query fails
        """
        replica = shard.standby_slave()
        if replica is None:
            raise PreconditionError(f"{shard.name} has no standby slave to validate against")

        tables = self.table_provider.sharded_tables()
        checks = [RangeCheck(table, column) for table in tables for column in table.sharding_keys]
        logger.info(
            f"Validating {shard.name}: {len(checks)} range check(s) on {replica.name}"
        )

        counts = self.executor.fan_out(
            VALIDATION_PHASE,
            checks,
            lambda check: self._run_check(replica, shard, check),
            max_workers=self.max_concurrency,
            label=lambda check: f"{replica.name}:{check.name}",
        )

        # Tables without sharding keys have nothing to violate
        statuses: dict[str, TableStatus] = {table.name: TableStatus.VALID for table in tables}
        for check, count in zip(checks, counts):
            if count > 0:
                statuses[check.table.name] = TableStatus.INVALID
                logger.warning(
                    f"{shard.name}: {count} row(s) in {check.name} outside "
                    f"[{shard.min_id}, {shard.max_id}]"
                )
        return statuses

    def _run_check(self, replica: DatabaseNode, shard: Shard, check: RangeCheck) -> int:
        sql = check.table.sql_range_check(check.column, shard.min_id, shard.max_id)
        count = _out_of_range_count(replica.query_return_array(sql))
        logger.debug(f"{replica.name}: {check.name} -> {count} out-of-range row(s)")
        return count
