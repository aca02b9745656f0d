"""Parser for shards command."""

import argparse
from typing import Any

from shardmerge.core.constants import INFINITY
from shardmerge.core.models.shard import ShardState

TRANSITIONS = ["merged-reads", "merged-writes", "decommission"]


def parse_max_id(value: str) -> int | str:
    """Parse a shard upper bound, accepting the INFINITY sentinel."""
    if value.upper() == INFINITY:
        return INFINITY
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid max id '{value}': expected integer or {INFINITY}")


def _add_range_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("min_id", type=int, help="Lowest id of the shard")
    parser.add_argument("max_id", type=parse_max_id, help=f"Highest id of the shard, or {INFINITY}")


def add_shards_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add shards subcommand parser.

    Args:
        subparsers: Subparsers object to add to

    Returns:
        The configured shards subparser
    """
    shards_parser = subparsers.add_parser(
        "shards",
        help="Inspect and transition shards in the registry",
        description="Inspect shards, resolve merge targets and apply lifecycle transitions",
    )

    shards_subparsers = shards_parser.add_subparsers(
        dest="shards_command",
        help="Shard subcommands",
        required=True,
    )

    # shards list
    list_parser = shards_subparsers.add_parser("list", help="List all registered shards")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # shards topology
    topology_parser = shards_subparsers.add_parser(
        "topology",
        help="List shards advertised in the live routing configuration",
    )
    topology_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # shards add
    add_parser = shards_subparsers.add_parser("add", help="Register a shard")
    _add_range_arguments(add_parser)
    add_parser.add_argument(
        "--state",
        choices=[state.value for state in ShardState],
        default=ShardState.READY.value,
        help="Initial state (default: ready)",
    )

    # shards merge-target
    target_parser = shards_subparsers.add_parser(
        "merge-target",
        help="Find the initializing shard a shard is merging into",
    )
    _add_range_arguments(target_parser)

    # shards transition
    transition_parser = shards_subparsers.add_parser(
        "transition",
        help="Apply a merge lifecycle transition to a shard",
        description=(
            "merged-reads -> merging, merged-writes -> deprecated, "
            "decommission -> decommissioned"
        ),
    )
    _add_range_arguments(transition_parser)
    transition_parser.add_argument("transition", choices=TRANSITIONS, help="Transition to apply")

    # shards prune
    shards_subparsers.add_parser("prune", help="Remove decommissioned shards from the registry")

    return shards_parser
