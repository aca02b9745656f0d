"""Rich-based output formatting utilities for ShardMerge CLI commands."""

import json
import os
import sys
from typing import Any

import rich.box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shardmerge.core.models.shard import ACTIVE_TOPOLOGY_STATES, Shard


# Constants for fallback message prefixes
class MessagePrefixes:
    """Constants for consistent message prefixes in fallback mode."""

    INFO = "[INFO]"
    SUCCESS = "[SUCCESS]"
    WARN = "[WARN]"
    ERROR = "[ERROR]"
    DEBUG = "[DEBUG]"


class RichOutputFormatter:
    """Terminal UI formatter using Rich library."""

    def __init__(self, verbose: bool = False):
        """Initialize Rich output formatter.

        Args:
            verbose: Whether to enable verbose output
        """
        self.verbose = verbose
        self._terminal_compatible = self._check_terminal_compatibility()
        self.console = Console() if self._terminal_compatible else None

    def _check_terminal_compatibility(self) -> bool:
        """Check if terminal supports Rich formatting."""
        if os.environ.get("SHARDMERGE_NO_RICH"):
            return False
        try:
            if not sys.stdout.isatty():
                return False
        except (AttributeError, ValueError):
            return False
        return os.environ.get("TERM", "") not in ["dumb", "unknown"]

    def _safe_print(self, message: str, plain: str, fallback_prefix: str = "") -> None:
        """Print with Rich markup, or plain text when Rich is unavailable."""
        if self._terminal_compatible and self.console is not None:
            try:
                self.console.print(message)
                return
            except Exception:
                # Rich failed, fall through to plain print
                pass

        if fallback_prefix:
            print(f"{fallback_prefix} {plain}")
        else:
            print(plain)

    def info(self, message: str) -> None:
        """Print an info message."""
        self._safe_print(f"[blue][INFO][/blue] {escape(message)}", message, MessagePrefixes.INFO)

    def success(self, message: str) -> None:
        """Print a success message."""
        self._safe_print(
            f"[green][SUCCESS][/green] {escape(message)}", message, MessagePrefixes.SUCCESS
        )

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self._safe_print(
            f"[yellow][WARN][/yellow] {escape(message)}", message, MessagePrefixes.WARN
        )

    def error(self, message: str) -> None:
        """Print an error message."""
        self._safe_print(f"[red][ERROR][/red] {escape(message)}", message, MessagePrefixes.ERROR)

    def verbose_info(self, message: str) -> None:
        """Print a verbose info message if verbose mode is enabled."""
        if self.verbose:
            self._safe_print(
                f"[cyan][DEBUG][/cyan] {escape(message)}", message, MessagePrefixes.DEBUG
            )

    def json_output(self, data: dict[str, Any]) -> None:
        """Print data as formatted JSON."""
        json_str = json.dumps(data, indent=2, default=str)
        if self.console is not None:
            from rich.syntax import Syntax

            self.console.print(Syntax(json_str, "json", theme="monokai"))
        else:
            print(json_str)

    def shard_table(self, shards: list[Shard], title: str = "Shards") -> None:
        """Print shards with their range, state and topology membership."""
        if self.console is None:
            print(f"\n{title}")
            for shard in shards:
                active = "yes" if shard.state in ACTIVE_TOPOLOGY_STATES else "no"
                print(f"  {shard.min_id}\t{shard.max_id}\t{shard.state.value}\t{active}")
            return

        table = Table(title=title, box=rich.box.ROUNDED)
        table.add_column("Min ID", justify="right", style="cyan")
        table.add_column("Max ID", justify="right", style="cyan")
        table.add_column("State", style="magenta")
        table.add_column("In topology", justify="center")
        for shard in shards:
            active = shard.state in ACTIVE_TOPOLOGY_STATES
            table.add_row(
                str(shard.min_id),
                str(shard.max_id),
                shard.state.value,
                "[green]yes[/green]" if active else "[dim]no[/dim]",
            )
        self.console.print(table)
