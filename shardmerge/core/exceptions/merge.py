"""Merge exceptions - errors raised while validating or merging shards.

PreconditionError is raised before any node is contacted, so nothing has
changed when it surfaces. MergeOperationalError and its subclasses are raised
from inside a merge phase and carry the phase and node that failed, since the
cluster may be left in an intermediate state that needs manual attention.
"""


class ShardMergeError(Exception):
    """Base exception for ShardMerge errors."""

    pass


class PreconditionError(ShardMergeError):
    """Raised when merge inputs are invalid.

    This occurs when:
    - A merge source is not a Shard, or has no standby slave
    - The aggregate node cannot aggregate or is already aggregating
    - The new shard master is not a database node or already has a pool
    """

    pass


class MergeOperationalError(ShardMergeError):
    """Raised when a unit of work inside a merge phase fails.

    Attributes:
        phase: Name of the phase that failed (e.g. "export")
        node: Name of the node the failing unit was operating on
    """

    def __init__(
        self, message: str, phase: str | None = None, node: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.node = node

    def __str__(self) -> str:
        context = []
        if self.phase:
            context.append(f"phase={self.phase}")
        if self.node:
            context.append(f"node={self.node}")
        if not context:
            return self.message
        return f"{self.message} [{', '.join(context)}]"


class PhaseTimeoutError(MergeOperationalError):
    """Raised when a unit of work exceeds the configured per-unit timeout."""

    pass


class MergeCancelledError(MergeOperationalError):
    """Raised when a unit is skipped because the merge was cancelled."""

    pass


class ValidationMismatch(MergeOperationalError):
    """Raised when imported row counts disagree with the recorded export counts.

    Node implementations raise this from inject_counts/import_data; the phase
    executor attaches phase and node context before it reaches the caller.
    """

    pass


class RegistryError(ShardMergeError):
    """Raised when the shard registry cannot be read or written."""

    pass
