"""Shard lifecycle transitions around a merge.

After an aggregate node is set up, the shards involved move through a short
sequence of states: the merged shard serves reads (merging), then takes
writes while the old shards are retired (deprecated), and finally the old
shards are removed (decommissioned).
"""

from collections.abc import Callable

from loguru import logger

from shardmerge.core.models.shard import ACTIVE_TOPOLOGY_STATES, Shard, ShardState


class ShardStateMachine:
    """Applies merge lifecycle transitions to a shard.

    Transitions are unconditional setters. Reads and writes transitions
    publish the new state through the sync hook; decommission does not, since
    the shard is removed from the registry by a separate step.
    """

    def __init__(
        self,
        shard: Shard,
        sync_configuration: Callable[[Shard], None] | None = None,
    ) -> None:
        """Initialize state machine.

        Args:
            shard: Shard whose state is driven
            sync_configuration: Hook that persists and publishes the shard's
                configuration (typically ShardRegistry.sync_configuration)
        """
        self.shard = shard
        self._sync = sync_configuration or (lambda shard: None)

    @property
    def state(self) -> ShardState:
        return self.shard.state

    @property
    def is_active_in_topology(self) -> bool:
        """Whether the shard should still be advertised in routing config."""
        return self.shard.state in ACTIVE_TOPOLOGY_STATES

    def prepare_for_merged_reads(self) -> None:
        self._transition(ShardState.MERGING)
        self._sync(self.shard)

    def prepare_for_merged_writes(self) -> None:
        self._transition(ShardState.DEPRECATED)
        self._sync(self.shard)

    def decommission(self) -> None:
        self._transition(ShardState.DECOMMISSIONED)

    def _transition(self, new_state: ShardState) -> None:
        old_state = self.shard.state
        self.shard.state = new_state
        logger.info(f"{self.shard.name}: {old_state.value} -> {new_state.value}")
