"""Aggregate node set-up for merging two shards while they serve traffic.

Takes one standby slave from each source shard, pauses its replication,
exports its data, ships the export to the aggregate node and the new shard
master, imports it there and finally wires up multi-source replication from
the source replicas into the aggregate node, with the new master replicating
from the aggregate.

Phases run in order and each one is a full barrier:

1. bulk_load_tuning     restart destinations with import-friendly mysqld flags
2. schema_provisioning  ship and import the schema on each destination
3. export               pause each source replica and export its id range
4. transfer             copy exports, clean up, resume each source replica
5. import               load each replica's export into both destinations
6. settings_rollback    restart destinations without the bulk-load flags
7. replication_wiring   attach replicas to the aggregate, point new master at it

Source replicas are resumed in the transfer phase, before anything is
imported, so their time out of replication does not depend on import speed.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger

from shardmerge.core.exceptions.merge import PreconditionError
from shardmerge.core.models.merge import (
    BinlogCoordinates,
    ExportRecord,
    MergePhase,
    MergeResult,
    MergeSource,
)
from shardmerge.core.models.shard import Shard
from shardmerge.interfaces.database_node import AggregateNode, DatabaseNode
from shardmerge.services.merge_context import MergeContext
from shardmerge.services.phase_executor import PhaseExecutor

if TYPE_CHECKING:
    from shardmerge.interfaces.table_metadata import Table


def _source_label(source: MergeSource) -> str:
    return source.replica.name


def _record_label(record: ExportRecord) -> str:
    return record.replica.name


class MergeOrchestrator:
    """Coordinates the aggregate node set-up for a shard merge.

    One orchestrator runs one merge at a time. State for a run lives in local
    collections and the returned MergeResult; nothing is persisted.
    """

    def __init__(self, context: MergeContext) -> None:
        """Initialize orchestrator.

        Args:
            context: File transfer service, merge table provider and config
        """
        self.context = context
        self.config = context.config
        self._cancel_event = threading.Event()
        self._paused_lock = threading.Lock()

    def cancel(self) -> None:
        """Stop the running merge before its next unit of work starts.

        Units already talking to a node finish their current call.
        """
        logger.warning("Merge cancellation requested")
        self._cancel_event.set()

    def set_up_aggregate_node(
        self,
        shards_to_merge: Sequence[Shard],
        aggregate_node: AggregateNode,
        new_shard_master: DatabaseNode,
    ) -> MergeResult:
        """Set up an aggregate node and new shard master from the given shards.

        Destinations are returned with replication configured but not
        started (they keep --skip-slave-start).

        Args:
            shards_to_merge: Source shards, each contributing its last standby slave
            aggregate_node: Multi-source node with nothing aggregating yet
            new_shard_master: Fresh node with no pool

        Returns:
            MergeResult with the export records used to wire replication

        Raises:
            PreconditionError: Before any node is contacted, on invalid inputs
            MergeOperationalError: If a phase fails; the cluster is left in
                that phase's intermediate state apart from paused source
                replicas, which are resumed before the error propagates
        """
        sources = self._validate_participants(shards_to_merge, aggregate_node, new_shard_master)

        # Units left running by an earlier aborted run keep that run's event
        cancel_event = self._cancel_event = threading.Event()
        paused: dict[int, MergeSource] = {}
        executor = PhaseExecutor(
            unit_timeout=self.config.unit_timeout_seconds,
            poll_interval=self.config.poll_interval_seconds,
            cancel_event=cancel_event,
        )
        data_nodes: list[DatabaseNode] = [new_shard_master, aggregate_node]
        logger.info(
            f"Setting up aggregate node {aggregate_node.name} and new master "
            f"{new_shard_master.name} from "
            f"{', '.join(source.shard.name for source in sources)}"
        )

        try:
            self._tune_for_bulk_load(executor, data_nodes)
            self._provision_schema(executor, sources[-1].replica, data_nodes)

            tables = self.context.table_provider.tables_to_merge()
            logger.info(f"Merging {len(tables)} table(s): {', '.join(t.name for t in tables)}")

            records = self._export(executor, sources, tables, paused)
            self._transfer(executor, records, data_nodes, tables, paused)
            self._import(executor, records, data_nodes, tables)
            self._roll_back_bulk_load_settings(executor, data_nodes)
            self._wire_replication(executor, records, aggregate_node, new_shard_master)
        except BaseException:
            # Set before compensating so stalled units restore their own replica
            cancel_event.set()
            self._resume_paused_replicas(paused)
            raise

        logger.info(f"Aggregate node {aggregate_node.name} is set up")
        return MergeResult(
            aggregate_node=aggregate_node,
            new_master=new_shard_master,
            tables=list(tables),
            export_records=records,
        )

    def _validate_participants(
        self,
        shards_to_merge: Sequence[Shard],
        aggregate_node: AggregateNode,
        new_shard_master: DatabaseNode,
    ) -> list[MergeSource]:
        if not shards_to_merge:
            raise PreconditionError("No shards given to merge")
        for shard in shards_to_merge:
            if not isinstance(shard, Shard):
                raise PreconditionError(
                    f"Attempting to create an aggregate node with a non-shard: {shard!r}"
                )
        if not isinstance(aggregate_node, AggregateNode) or not aggregate_node.aggregator:
            raise PreconditionError("Attempting to set up aggregation on a non-aggregate node")
        if aggregate_node.aggregating_nodes:
            raise PreconditionError(
                f"Attempting to set up aggregation on {aggregate_node.name}, "
                "which is already aggregating"
            )
        if not isinstance(new_shard_master, DatabaseNode):
            raise PreconditionError(f"Invalid new master node: {new_shard_master!r}")
        if new_shard_master.pool is not None:
            raise PreconditionError(f"New shard master {new_shard_master.name} already has a pool")

        sources = []
        for shard in shards_to_merge:
            replica = shard.standby_slave()
            if replica is None:
                raise PreconditionError(f"{shard.name} has no standby slave to export from")
            sources.append(MergeSource(shard=shard, replica=replica))
        return sources

    def _tune_for_bulk_load(
        self, executor: PhaseExecutor, data_nodes: list[DatabaseNode]
    ) -> None:
        # Destinations serve no traffic yet, so durability can be relaxed
        flags = self.config.bulk_load_flags
        logger.info(f"Restarting {', '.join(db.name for db in data_nodes)} with {' '.join(flags)}")
        executor.fan_out(
            MergePhase.BULK_LOAD_TUNING, data_nodes, lambda db: db.restart_mysql(*flags)
        )

    def _provision_schema(
        self,
        executor: PhaseExecutor,
        schema_source: DatabaseNode,
        data_nodes: list[DatabaseNode],
    ) -> None:
        def ship_and_import(db: DatabaseNode) -> None:
            schema_source.ship_schema_to(db)
            db.import_schemata()

        for db in data_nodes:
            logger.info(f"Shipping schema from {schema_source.name} to {db.name}")
            executor.run_step(MergePhase.SCHEMA_PROVISIONING, db, ship_and_import)

    def _export(
        self,
        executor: PhaseExecutor,
        sources: list[MergeSource],
        tables: list[Table],
        paused: dict[int, MergeSource],
    ) -> list[ExportRecord]:
        def export_source(source: MergeSource) -> ExportRecord:
            replica = source.replica
            with self._paused_lock:
                paused[id(replica)] = source
            # Re-enabled in the transfer phase once replication resumes
            for step in (
                replica.disable_monitoring,
                replica.stop_query_killer,
                replica.pause_replication,
            ):
                step()
                if executor.cancelled:
                    # The run was abandoned while this call was in flight
                    with self._paused_lock:
                        paused.pop(id(replica), None)
                    self._restore_replica(replica)
                    executor.check_cancelled(MergePhase.EXPORT, replica.name)
            logger.info(f"Paused replication on {replica.name}")

            replica.export_data(tables, source.shard.min_id, source.shard.max_id)
            executor.check_cancelled(MergePhase.EXPORT, replica.name)
            counts = dict(replica.import_export_counts())
            log_file, log_pos = replica.binlog_coordinates()
            coordinates = BinlogCoordinates(log_file=log_file, log_pos=int(log_pos))
            logger.info(
                f"Exported {source.shard.name} from {replica.name} "
                f"at {coordinates.log_file}:{coordinates.log_pos}"
            )
            return ExportRecord(source=source, counts=counts, coordinates=coordinates)

        return executor.fan_out(
            MergePhase.EXPORT, sources, export_source, label=_source_label
        )

    def _transfer(
        self,
        executor: PhaseExecutor,
        records: list[ExportRecord],
        data_nodes: list[DatabaseNode],
        tables: list[Table],
        paused: dict[int, MergeSource],
    ) -> None:
        export_location = self.config.export_location

        def ship_and_resume(record: ExportRecord) -> None:
            replica = record.replica
            shard = record.shard
            self.context.file_transfer.fast_copy_chain(
                replica,
                export_location,
                data_nodes,
                port=self.config.transfer_port,
                files=shard.table_export_filenames(export_location, tables, full_path=False),
                overwrite=True,
            )
            for path in shard.table_export_filenames(export_location, tables, full_path=True):
                replica.ssh_cmd(f"rm -f {path}")

            replica.resume_replication()
            replica.catch_up_to_master()
            replica.enable_monitoring()
            replica.start_query_killer()
            with self._paused_lock:
                paused.pop(id(replica), None)
            logger.info(f"Resumed replication on {replica.name}")

        for record in records:
            executor.run_step(MergePhase.TRANSFER, record, ship_and_resume, label=_record_label)

    def _import(
        self,
        executor: PhaseExecutor,
        records: list[ExportRecord],
        data_nodes: list[DatabaseNode],
        tables: list[Table],
    ) -> None:
        for record in records:

            def load(db: DatabaseNode, record: ExportRecord = record) -> None:
                # The import validates itself against the counts captured at export
                db.inject_counts(dict(record.counts))
                db.import_data(tables, record.shard.min_id, record.shard.max_id)

            logger.info(
                f"Importing {record.shard.name} into "
                f"{', '.join(db.name for db in data_nodes)}"
            )
            executor.fan_out(MergePhase.IMPORT, data_nodes, load)

    def _roll_back_bulk_load_settings(
        self, executor: PhaseExecutor, data_nodes: list[DatabaseNode]
    ) -> None:
        flags = self.config.post_import_flags
        executor.fan_out(
            MergePhase.SETTINGS_ROLLBACK, data_nodes, lambda db: db.restart_mysql(*flags)
        )

    def _wire_replication(
        self,
        executor: PhaseExecutor,
        records: list[ExportRecord],
        aggregate_node: AggregateNode,
        new_shard_master: DatabaseNode,
    ) -> None:
        for record in records:
            logger.info(
                f"Attaching {record.replica.name} to {aggregate_node.name} at "
                f"{record.coordinates.log_file}:{record.coordinates.log_pos}"
            )
            executor.run_step(
                MergePhase.REPLICATION_WIRING,
                aggregate_node,
                lambda node, record=record: node.add_node_to_aggregate(
                    record.replica, record.coordinates
                ),
            )
        executor.run_step(
            MergePhase.REPLICATION_WIRING,
            new_shard_master,
            lambda node: node.change_master_to(aggregate_node),
        )

    def _resume_paused_replicas(self, paused: dict[int, MergeSource]) -> None:
        """Put replicas paused by an aborted run back into replication."""
        with self._paused_lock:
            sources = list(paused.values())
            paused.clear()

        for source in sources:
            logger.warning(f"Merge aborted, resuming replication on {source.replica.name}")
            self._restore_replica(source.replica)

    def _restore_replica(self, replica: DatabaseNode) -> None:
        try:
            replica.resume_replication()
            replica.enable_monitoring()
            replica.start_query_killer()
        except Exception as e:
            logger.error(f"Failed to restore {replica.name} after aborted merge: {e}")
