"""Merge target resolution - find the shard a smaller shard is merging into."""

from collections.abc import Iterable

from shardmerge.core.models.shard import Shard, ShardState
from shardmerge.interfaces.cluster_services import ShardRegistry


def find_merge_target(shard: Shard, all_shards: Iterable[Shard]) -> Shard | None:
    """Return the initializing shard whose range contains the given shard.

    Only the first match in registry order is returned; there is a single
    designated aggregation target per range. Unbounded shards never match
    and a shard is never its own target.

    Args:
        shard: Shard being merged away
        all_shards: Every known shard, in registry order

    Returns:
        The combined shard, or None if no shard qualifies
    """
    for candidate in all_shards:
        if candidate is shard:
            continue
        if candidate.state != ShardState.INITIALIZING:
            continue
        if candidate.contains(shard):
            return candidate
    return None


class CombinedShardResolver:
    """Resolves merge targets against a shard registry."""

    def __init__(self, registry: ShardRegistry) -> None:
        self.registry = registry

    def combined_shard(self, shard: Shard) -> Shard | None:
        return find_merge_target(shard, self.registry.shards())
