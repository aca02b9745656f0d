"""Configuration models for ShardMerge."""

from .config import Config
from .logging_config import FileLoggingConfig, LoggingConfig
from .merge_config import MergeConfig

__all__ = ["Config", "FileLoggingConfig", "LoggingConfig", "MergeConfig"]
