"""User-facing interfaces for ShardMerge."""
