"""Command-line interface for ShardMerge."""
