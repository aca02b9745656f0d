"""Top-level configuration for ShardMerge.

Configuration is layered, later sources winning:
- Default values
- JSON configuration file (--config)
- Environment variables (SHARDMERGE_*)
- CLI arguments
"""

import json
import os
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from shardmerge.core.config.logging_config import LoggingConfig
from shardmerge.core.config.merge_config import MergeConfig

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "SHARDMERGE_REGISTRY_PATH": (None, "registry_path"),
    "SHARDMERGE_EXPORT_LOCATION": ("merge", "export_location"),
    "SHARDMERGE_TRANSFER_PORT": ("merge", "transfer_port"),
    "SHARDMERGE_UNIT_TIMEOUT": ("merge", "unit_timeout_seconds"),
}


def _deep_update(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Merge nested dictionaries, values from updates winning."""
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


class Config(BaseModel):
    """ShardMerge configuration."""

    merge: MergeConfig = Field(default_factory=MergeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    registry_path: Path = Field(
        default=Path("shards.json"), description="Path to the JSON shard registry"
    )

    @classmethod
    def load(cls, config_file: Path | None = None, args: Any = None) -> "Config":
        """Build configuration from file, environment and CLI arguments.

        Args:
            config_file: Optional JSON configuration file
            args: Parsed command line arguments

        Returns:
            Validated Config

        Raises:
            ValueError: If the file cannot be parsed or values are invalid
        """
        data: dict[str, Any] = {}

        if config_file is not None:
            try:
                data = json.loads(Path(config_file).read_text())
            except (OSError, json.JSONDecodeError) as e:
                raise ValueError(f"Cannot read config file '{config_file}': {e}") from e
            if not isinstance(data, dict):
                raise ValueError(f"Config file '{config_file}' must contain a JSON object")
            logger.debug(f"Loaded configuration from {config_file}")

        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if not value:
                continue
            target = data if section is None else data.setdefault(section, {})
            target[key] = value

        if args is not None:
            if getattr(args, "registry", None):
                data["registry_path"] = args.registry
            logging_overrides = LoggingConfig.extract_cli_overrides(args)
            if logging_overrides:
                _deep_update(data.setdefault("logging", {}), logging_overrides)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e
