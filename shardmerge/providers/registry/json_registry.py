"""JSON-file shard registry.

Stores every known shard with its lifecycle state in a single JSON document:

    {"shards": [{"min_id": 1, "max_id": 1000, "state": "ready"}, ...]}

The published topology is the subset of shards still active in routing
(see ACTIVE_TOPOLOGY_STATES). Decommissioned shards stay in the file until
prune_decommissioned() removes them.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

import fasteners
from loguru import logger

from shardmerge.core.exceptions.merge import RegistryError
from shardmerge.core.models.shard import ACTIVE_TOPOLOGY_STATES, Shard, ShardState


class JsonShardRegistry:
    """Shard registry backed by a JSON file.

    Thread-safe and process-safe: every change takes a thread lock, then an
    inter-process file lock, re-reads the file, applies itself to what is on
    disk and replaces the file atomically. Queries answer from the state seen
    by the last load or change.
    """

    def __init__(self, path: Path) -> None:
        """Load the registry.

        Args:
            path: Registry file; a missing file is an empty registry

        Raises:
            RegistryError: If the file exists but cannot be parsed
        """
        self.path = Path(path)
        self.lock_file = self.path.with_name(f".{self.path.name}.lock")
        self._thread_lock = threading.RLock()
        self._process_lock: fasteners.InterProcessLock | None = None
        self._shards: list[Shard] = self._read()

    def shards(self) -> list[Shard]:
        with self._thread_lock:
            return list(self._shards)

    def topology(self) -> list[Shard]:
        """Shards that should be advertised in the live routing configuration."""
        with self._thread_lock:
            return [s for s in self._shards if s.state in ACTIVE_TOPOLOGY_STATES]

    def get(self, min_id: int, max_id: int | str) -> Shard | None:
        """Find a shard by its exact range."""
        with self._thread_lock:
            index = _index_of(self._shards, min_id, max_id)
            return None if index is None else self._shards[index]

    def add(self, shard: Shard) -> None:
        """Register a new shard and persist the registry.

        Raises:
            RegistryError: If a shard with the same range is already registered
        """
        with self._thread_lock:
            with self._lock():
                shards = self._read()
                if _index_of(shards, shard.min_id, shard.max_id) is not None:
                    self._shards = shards
                    raise RegistryError(f"{shard.name} is already registered")
                shards.append(shard)
                self._write(shards)
        logger.info(f"Registered {shard.name} ({shard.state.value})")

    def sync_configuration(self, shard: Shard) -> None:
        """Persist a shard's new state.

        The entry with the shard's range is replaced; other entries are kept
        as they are on disk.

        Raises:
            RegistryError: If the shard is not registered
        """
        with self._thread_lock:
            with self._lock():
                shards = self._read()
                index = _index_of(shards, shard.min_id, shard.max_id)
                if index is None:
                    raise RegistryError(f"{shard.name} is not registered in {self.path}")
                shards[index] = shard
                self._write(shards)
        logger.debug(f"Synced configuration for {shard.name} ({shard.state.value})")

    def prune_decommissioned(self) -> list[Shard]:
        """Remove decommissioned shards and persist.

        Returns:
            The shards that were removed
        """
        with self._thread_lock:
            with self._lock():
                shards = self._read()
                removed = [s for s in shards if s.state == ShardState.DECOMMISSIONED]
                if removed:
                    self._write([s for s in shards if s.state != ShardState.DECOMMISSIONED])
                else:
                    self._shards = shards
        for shard in removed:
            logger.info(f"Removed {shard.name} from registry")
        return removed

    def _lock(self) -> fasteners.InterProcessLock:
        if self._process_lock is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._process_lock = fasteners.InterProcessLock(str(self.lock_file))
        return self._process_lock

    def _read(self) -> list[Shard]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Cannot read shard registry {self.path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("shards"), list):
            raise RegistryError(f"Shard registry {self.path} must contain a 'shards' list")
        try:
            return [Shard.from_dict(entry) for entry in data["shards"]]
        except (KeyError, TypeError, ValueError) as e:
            raise RegistryError(f"Invalid shard entry in {self.path}: {e}") from e

    def _write(self, shards: list[Shard]) -> None:
        """Write registry with atomic write-then-rename (must hold both locks)."""
        payload: dict[str, Any] = {"shards": [s.to_dict() for s in shards]}
        content = json.dumps(payload, indent=2)

        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.tmp.",
            suffix=".json",
            text=True,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise RegistryError(f"Failed to write shard registry {self.path}: {e}") from e
        self._shards = shards


def _index_of(shards: list[Shard], min_id: int, max_id: int | str) -> int | None:
    key = Shard(min_id=min_id, max_id=max_id)
    for index, shard in enumerate(shards):
        if shard.min_id == key.min_id and shard.max_id == key.max_id:
            return index
    return None
