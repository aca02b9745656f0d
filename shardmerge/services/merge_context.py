"""Explicit context handed to a merge run instead of process-wide globals."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shardmerge.core.config.merge_config import MergeConfig

if TYPE_CHECKING:
    from shardmerge.interfaces.cluster_services import FileTransfer
    from shardmerge.interfaces.table_metadata import MergeTableProvider


@dataclass
class MergeContext:
    """Collaborators and settings for one MergeOrchestrator.

    Attributes:
        file_transfer: Ships exported files from source replicas to destinations
        table_provider: Supplies the tables designated for the merge
        config: Merge settings (export location, port, flags, timeouts)
    """

    file_transfer: FileTransfer
    table_provider: MergeTableProvider
    config: MergeConfig = field(default_factory=MergeConfig)
