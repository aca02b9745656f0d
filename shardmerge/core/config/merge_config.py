"""Merge configuration for ShardMerge.

This module provides configuration for the aggregate node set-up including
transfer settings, validation concurrency, per-unit timeouts and the mysqld
flags used while bulk-loading destination nodes.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from shardmerge.core.constants import (
    BULK_LOAD_FLAGS,
    DEFAULT_TRANSFER_PORT,
    DEFAULT_VALIDATION_CONCURRENCY,
    POST_IMPORT_FLAGS,
)


class MergeConfig(BaseModel):
    """Configuration for shard merge behavior.

    Controls where exports are written, how files are shipped, how hard
    standby replicas are queried and how long a single remote call may run.
    """

    export_location: Path = Field(
        default=Path("/tmp"),
        description="Directory on source replicas that exports are written to",
    )

    transfer_port: int = Field(
        default=DEFAULT_TRANSFER_PORT,
        ge=1,
        le=65535,
        description="Port used by the file transfer chain",
    )

    validation_concurrency: int = Field(
        default=DEFAULT_VALIDATION_CONCURRENCY,
        ge=1,
        description="Maximum concurrent range checks against one standby replica",
    )

    unit_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Maximum runtime of a single unit of work in a phase (None = no limit)",
    )

    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="How often a phase join checks for stalled units",
    )

    bulk_load_flags: list[str] = Field(
        default_factory=lambda: list(BULK_LOAD_FLAGS),
        description="mysqld options applied to destinations during import",
    )

    post_import_flags: list[str] = Field(
        default_factory=lambda: list(POST_IMPORT_FLAGS),
        description="mysqld options applied to destinations after import",
    )

    @field_validator("bulk_load_flags", "post_import_flags")
    @classmethod
    def validate_flags(cls, v: list[str]) -> list[str]:
        """Validate mysqld option syntax."""
        for flag in v:
            if not flag.startswith("--"):
                raise ValueError(f"Invalid mysqld option '{flag}': must start with '--'")
        return v

    def __repr__(self) -> str:
        """String representation of merge configuration."""
        return (
            f"MergeConfig("
            f"export_location={str(self.export_location)!r}, "
            f"transfer_port={self.transfer_port}, "
            f"unit_timeout_seconds={self.unit_timeout_seconds})"
        )
