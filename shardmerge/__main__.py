"""Entry point for running ShardMerge as a module: python -m shardmerge.

This enables:
    python -m shardmerge shards list
    python -m shardmerge --registry shards.json shards transition 1 1000 merged-reads
"""

from shardmerge.api.cli.main import main

if __name__ == "__main__":
    main()
