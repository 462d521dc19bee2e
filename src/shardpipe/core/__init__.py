# src/shardpipe/core/__init__.py
"""Core infrastructure: Configuration, Logging."""

from shardpipe.core.config import (
    ConcurrencySettings,
    LoggingSettings,
    PipeSettings,
    ShardpipeSettings,
    load_settings,
)
from shardpipe.core.logging import (
    configure_logging,
    get_logger,
)

__all__ = [
    "ConcurrencySettings",
    "LoggingSettings",
    "PipeSettings",
    "ShardpipeSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
