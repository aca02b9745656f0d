"""Shard registry providers."""

from .json_registry import JsonShardRegistry

__all__ = ["JsonShardRegistry"]
