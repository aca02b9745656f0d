"""Main entry point for ShardMerge CLI."""

import asyncio
import os
import sys
from typing import Any

from loguru import logger

from shardmerge.core.config.config import Config

from .parsers import create_main_parser, setup_subparsers
from .utils.rich_output import RichOutputFormatter


def setup_logging(verbose: bool = False, config: Any = None) -> None:
    """Configure loguru sinks for the CLI process.

    Console goes to stderr: DEBUG when verbose, WARNING when file logging is
    enabled (the file gets the detail), otherwise the configured console level.

    Args:
        verbose: Enable debug console output
        config: Config or LoggingConfig instance, or None for console only
    """
    logger.remove()

    logging_config = getattr(config, "logging", config)
    file_config = getattr(logging_config, "file", None)
    file_enabled = bool(file_config is not None and file_config.enabled)

    if verbose:
        console_level = "DEBUG"
    elif file_enabled:
        console_level = "WARNING"
    else:
        console_level = getattr(logging_config, "console_level", None) or os.getenv(
            "SHARDMERGE_CONSOLE_LOG_LEVEL", "INFO"
        )

    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )

    if file_enabled:
        logger.add(
            file_config.path,
            level=file_config.level,
            rotation=file_config.rotation,
            retention=file_config.retention,
            format=file_config.format,
            enqueue=True,
        )


async def async_main(argv: list[str] | None = None) -> None:
    """Parse arguments, load configuration and dispatch the command."""
    parser = create_main_parser()
    setup_subparsers(parser)
    args = parser.parse_args(argv)

    try:
        config = Config.load(args.config, args)
    except ValueError as e:
        RichOutputFormatter().error(str(e))
        sys.exit(1)

    setup_logging(verbose=args.verbose, config=config)

    if args.command == "shards":
        from .commands.shards import shards_command

        await shards_command(args, config)
    else:
        parser.print_help()
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    """Synchronous CLI entry point."""
    try:
        asyncio.run(async_main(argv))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        sys.exit(130)
