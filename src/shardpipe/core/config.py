# src/shardpipe/core/config.py
"""
Configuration schema and loading for shardpipe.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Example YAML:
    pipe:
      command: ["wc", "-l"]
      env:
        LC_ALL: C
      working_dir: isolated
      encoding: utf-8
      serializer: text
    concurrency:
      max_workers: 4
    logging:
      level: DEBUG
      json_output: true
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

from shardpipe.contracts.enums import StderrMode, WorkingDirMode
from shardpipe.pipe.spec import DEFAULT_BUFFER_SIZE, DEFAULT_WORKING_DIR_ROOT, PipeSpec, PostHook, PreHook, tokenize_command

if TYPE_CHECKING:
    from shardpipe.plugins.manager import SerializerManager


class PipeSettings(BaseModel):
    """Serializable subset of a pipe's configuration.

    Hooks are code, not configuration: pass them to to_pipe_spec().
    """

    model_config = {"frozen": True, "extra": "forbid"}

    command: list[str] = Field(description="Argument vector, or a whitespace-separated command string")
    env: dict[str, str] = Field(default_factory=dict, description="Environment variable overrides")
    working_dir: WorkingDirMode = Field(
        default=WorkingDirMode.INHERIT,
        description="'inherit' runs in the caller's cwd, 'isolated' in a per-task directory",
    )
    encoding: str = Field(default="utf-8", description="Character encoding for text serializers")
    buffer_size: int = Field(default=DEFAULT_BUFFER_SIZE, gt=0, description="Pipe buffer size in bytes")
    serializer: str = Field(default="text", description="Registered serializer name")
    stderr: StderrMode = Field(default=StderrMode.INHERIT, description="'inherit' or 'discard' subprocess stderr")
    working_dir_root: Path = Field(default=DEFAULT_WORKING_DIR_ROOT, description="Parent of isolated working directories")
    cleanup_working_dir: bool = Field(default=False, description="Remove isolated directories after each run")

    @field_validator("command", mode="before")
    @classmethod
    def _tokenize_command(cls, v: Any) -> Any:
        """Accept a command string and split it on whitespace."""
        if isinstance(v, str):
            return tokenize_command(v)
        return v

    @field_validator("command")
    @classmethod
    def _validate_command_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("command must not be empty")
        return v

    @field_validator("encoding")
    @classmethod
    def _validate_encoding(cls, v: str) -> str:
        import codecs

        try:
            codecs.lookup(v)
        except LookupError as e:
            raise ValueError(f"unknown encoding: {v!r}") from e
        return v

    def to_pipe_spec(
        self,
        manager: "SerializerManager",
        *,
        pre_hook: PreHook | None = None,
        post_hook: PostHook | None = None,
    ) -> PipeSpec:
        """Build the runtime PipeSpec, resolving the serializer by name.

        Raises:
            ValueError: If the serializer name is not registered
        """
        return PipeSpec(
            command=tuple(self.command),
            env=dict(self.env),
            working_dir=self.working_dir,
            encoding=self.encoding,
            buffer_size=self.buffer_size,
            pre_hook=pre_hook,
            post_hook=post_hook,
            serializer=manager.create(self.serializer),
            stderr=self.stderr,
            working_dir_root=self.working_dir_root,
            cleanup_working_dir=self.cleanup_working_dir,
        )


class ConcurrencySettings(BaseModel):
    """Partition-level parallelism of the local host."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_workers: int = Field(
        default=1,
        gt=0,
        description="Partitions evaluated concurrently (default 1: sequential)",
    )


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    json_output: bool = Field(default=False, description="Emit JSON log lines instead of console format")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        normalized = v.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {v!r}")
        return normalized


class ShardpipeSettings(BaseModel):
    """Top-level settings file schema."""

    model_config = {"frozen": True, "extra": "forbid"}

    pipe: PipeSettings
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: Path) -> ShardpipeSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (SHARDPIPE_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: SHARDPIPE_PIPE__ENCODING for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated ShardpipeSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="SHARDPIPE",
        settings_files=[str(config_path)],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    # Also filter out internal Dynaconf settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES", "ENVVAR_PREFIX", "MERGE_ENABLED"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return ShardpipeSettings(**raw_config)
