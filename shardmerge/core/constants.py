"""Core constants for ShardMerge."""

# Sentinel max_id for the last shard in the id space
INFINITY = "INFINITY"

# Port used by the file transfer chain when shipping exported data
DEFAULT_TRANSFER_PORT = 3307

# Upper bound on concurrent range checks against a single standby replica
DEFAULT_VALIDATION_CONCURRENCY = 8

# mysqld flags applied to destination nodes while bulk-loading
BULK_LOAD_FLAGS: tuple[str, ...] = (
    "--skip-log-bin",
    "--skip-log-slave-updates",
    "--innodb-autoinc-lock-mode=2",
    "--skip-slave-start",
    "--innodb_flush_log_at_trx_commit=2",
    "--innodb-doublewrite=0",
)

# mysqld flags kept after the import so destinations do not start replicating
POST_IMPORT_FLAGS: tuple[str, ...] = ("--skip-slave-start",)
