"""Main argument parser for ShardMerge CLI."""

import argparse

from shardmerge import __version__

from .common_arguments import add_common_arguments
from .shards_parser import add_shards_subparser


def create_main_parser() -> argparse.ArgumentParser:
    """Create the top-level parser.

    Returns:
        Parser with common arguments; subcommands are added by setup_subparsers
    """
    parser = argparse.ArgumentParser(
        prog="shardmerge",
        description="Manage shard lifecycle and merge targets for id-range shards",
    )
    parser.add_argument("--version", action="version", version=f"shardmerge {__version__}")
    add_common_arguments(parser)
    return parser


def setup_subparsers(parser: argparse.ArgumentParser) -> None:
    """Register all command subparsers."""
    subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)
    add_shards_subparser(subparsers)
