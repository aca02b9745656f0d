"""Core models, configuration and exceptions for ShardMerge."""
