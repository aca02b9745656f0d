"""Log sink settings for merge runs.

The console sink always exists; the file sink is opt-in and is where the
per-thread detail of a merge goes, so its format carries the worker thread
name (merge-<phase>_N) next to each message.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

FILE_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | "
    "{name}:{line} - {message}"
)


def _normalize_level(value: str, sink: str) -> str:
    level = value.strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(
            f"Invalid {sink}log level '{value}', expected one of {'/'.join(LOG_LEVELS)}"
        )
    return level


class FileLoggingConfig(BaseModel):
    """Rotating log file written by loguru."""

    enabled: bool = False
    path: str = Field(default="shardmerge.log", description="Log file location")
    level: str = "INFO"
    rotation: str = Field(default="10 MB", description="loguru rotation, size or interval")
    retention: str = Field(default="4 weeks", description="loguru retention period")
    format: str = FILE_LOG_FORMAT

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        return _normalize_level(v, "")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Log file path cannot be empty")
        return v


class LoggingConfig(BaseModel):
    """Console level plus the optional file sink."""

    file: FileLoggingConfig = Field(default_factory=FileLoggingConfig)
    console_level: str = "INFO"

    @field_validator("console_level")
    @classmethod
    def validate_console_level(cls, v: str) -> str:
        return _normalize_level(v, "console ")

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any] | None:
        """Map --log-file/--log-level onto the file sink.

        Giving --log-file turns the file sink on. Returns None when neither
        flag was given so the layered config is left untouched.
        """
        log_file = getattr(args, "log_file", None)
        log_level = getattr(args, "log_level", None)
        sink = {
            key: value
            for key, value in (
                ("enabled", True if log_file else None),
                ("path", log_file),
                ("level", log_level),
            )
            if value
        }
        return {"file": sink} if sink else None
