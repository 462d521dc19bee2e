"""Shared contracts for cross-boundary data types.

Enums, context dataclasses and the error taxonomy used by the serializer
plugins, the pipe subsystem and the host harness.

This package is a LEAF MODULE with no outbound dependencies to core/pipe.
Settings classes live in shardpipe.core.config.
"""

from shardpipe.contracts.context import (
    MAP_INPUT_FILE_ENV,
    MAPREDUCE_MAP_INPUT_FILE_ENV,
    FileSplit,
    TaskContext,
)
from shardpipe.contracts.enums import (
    FeederPhase,
    PipeState,
    StderrMode,
    WorkingDirMode,
)
from shardpipe.contracts.errors import (
    FeederFailure,
    FramingError,
    PipeCancelledError,
    PipeError,
    PipeExitError,
    PipeFeederError,
    PipeLaunchError,
)

__all__ = [
    "MAPREDUCE_MAP_INPUT_FILE_ENV",
    "MAP_INPUT_FILE_ENV",
    "FeederFailure",
    "FeederPhase",
    "FileSplit",
    "FramingError",
    "PipeCancelledError",
    "PipeError",
    "PipeExitError",
    "PipeFeederError",
    "PipeLaunchError",
    "PipeState",
    "StderrMode",
    "TaskContext",
    "WorkingDirMode",
]
