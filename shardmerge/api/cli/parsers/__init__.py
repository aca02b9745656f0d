"""Argument parser utilities for ShardMerge CLI commands."""

from .main_parser import create_main_parser, setup_subparsers
from .shards_parser import add_shards_subparser

__all__ = [
    "add_shards_subparser",
    "create_main_parser",
    "setup_subparsers",
]
