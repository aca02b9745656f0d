"""ShardMerge - live consolidation of id-range shards into an aggregate node."""

__version__ = "0.3.0"
