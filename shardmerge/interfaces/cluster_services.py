"""Cluster-level service protocols: file transfer and shard registry."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from shardmerge.core.models.shard import Shard
    from shardmerge.interfaces.database_node import DatabaseNode


class FileTransfer(Protocol):
    """Copies files from one host to several destination hosts."""

    def fast_copy_chain(
        self,
        source: DatabaseNode,
        base_dir: Path,
        targets: Sequence[DatabaseNode],
        *,
        port: int,
        files: list[str],
        overwrite: bool = False,
    ) -> None:
        """Copy files under base_dir on source to the same location on targets."""
        ...


class ShardRegistry(Protocol):
    """Shared topology registry holding every known shard."""

    def shards(self) -> list[Shard]:
        """All known shards, in registry order."""
        ...

    def sync_configuration(self, shard: Shard) -> None:
        """Persist and publish a shard's state change."""
        ...
