"""Protocols for the collaborators ShardMerge orchestrates."""
