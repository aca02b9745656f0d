"""Shards command module - registry inspection and lifecycle transitions."""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from shardmerge.core.config.config import Config
from shardmerge.core.exceptions.merge import RegistryError
from shardmerge.core.models.shard import Shard, ShardState
from shardmerge.providers.registry.json_registry import JsonShardRegistry
from shardmerge.services.merge_target import CombinedShardResolver
from shardmerge.services.shard_lifecycle import ShardStateMachine

from ..utils.rich_output import RichOutputFormatter


async def shards_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the shards command.

    Args:
        args: Parsed command-line arguments
        config: Pre-validated configuration instance
    """
    formatter = RichOutputFormatter(verbose=getattr(args, "verbose", False))
    subcommand = getattr(args, "shards_command", None)

    handlers = {
        "list": _shards_list,
        "topology": _shards_topology,
        "add": _shards_add,
        "merge-target": _shards_merge_target,
        "transition": _shards_transition,
        "prune": _shards_prune,
    }
    handler = handlers.get(subcommand)
    if handler is None:
        formatter.error(f"Unknown shards subcommand: {subcommand}")
        sys.exit(1)

    try:
        registry = JsonShardRegistry(config.registry_path)
        handler(args, registry, formatter)
    except RegistryError as e:
        formatter.error(str(e))
        logger.opt(exception=True).debug("Shards command error details")
        sys.exit(1)


def _require_shard(
    args: argparse.Namespace, registry: JsonShardRegistry, formatter: RichOutputFormatter
) -> Shard:
    shard = registry.get(args.min_id, args.max_id)
    if shard is None:
        formatter.error(f"No shard registered for range {args.min_id}-{args.max_id}")
        sys.exit(1)
    return shard


def _shards_list(
    args: argparse.Namespace, registry: JsonShardRegistry, formatter: RichOutputFormatter
) -> None:
    shards = registry.shards()
    if args.json:
        formatter.json_output({"shards": [s.to_dict() for s in shards]})
    elif not shards:
        formatter.info(f"No shards registered in {registry.path}")
    else:
        formatter.shard_table(shards)


def _shards_topology(
    args: argparse.Namespace, registry: JsonShardRegistry, formatter: RichOutputFormatter
) -> None:
    shards = registry.topology()
    if args.json:
        formatter.json_output({"shards": [s.to_dict() for s in shards]})
    else:
        formatter.shard_table(shards, title="Live topology")


def _shards_add(
    args: argparse.Namespace, registry: JsonShardRegistry, formatter: RichOutputFormatter
) -> None:
    shard = Shard(min_id=args.min_id, max_id=args.max_id, state=ShardState(args.state))
    registry.add(shard)
    formatter.success(f"Registered {shard.name} ({shard.state.value})")


def _shards_merge_target(
    args: argparse.Namespace, registry: JsonShardRegistry, formatter: RichOutputFormatter
) -> None:
    shard = _require_shard(args, registry, formatter)
    target = CombinedShardResolver(registry).combined_shard(shard)
    if target is None:
        formatter.warning(f"{shard.name} has no initializing merge target")
        sys.exit(1)
    formatter.success(f"{shard.name} merges into {target.name}")


def _shards_transition(
    args: argparse.Namespace, registry: JsonShardRegistry, formatter: RichOutputFormatter
) -> None:
    shard = _require_shard(args, registry, formatter)
    machine = ShardStateMachine(shard, registry.sync_configuration)
    old_state = shard.state

    if args.transition == "merged-reads":
        machine.prepare_for_merged_reads()
    elif args.transition == "merged-writes":
        machine.prepare_for_merged_writes()
    else:
        machine.decommission()
        # Decommission is not published; record it so prune can find the shard
        registry.sync_configuration(shard)

    formatter.success(f"{shard.name}: {old_state.value} -> {shard.state.value}")
    if not machine.is_active_in_topology:
        formatter.verbose_info(f"{shard.name} is no longer advertised in the live topology")


def _shards_prune(
    args: argparse.Namespace, registry: JsonShardRegistry, formatter: RichOutputFormatter
) -> None:
    removed = registry.prune_decommissioned()
    if not removed:
        formatter.info("No decommissioned shards to remove")
        return
    for shard in removed:
        formatter.success(f"Removed {shard.name}")
