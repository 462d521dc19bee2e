"""Immutable configuration of one pipe transform.

PipeSpec is the runtime form of a pipe's configuration: it holds the
serializer instance and the hook callables directly. For file/env based
configuration use shardpipe.core.config.PipeSettings, which validates the
serializable subset and builds a PipeSpec via to_pipe_spec().
"""

from __future__ import annotations

import codecs
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from shardpipe.contracts.enums import StderrMode, WorkingDirMode
from shardpipe.plugins.serializers.base import SerializationStrategy
from shardpipe.plugins.serializers.text import TextLineSerializer

EmitFn = Callable[[Any], None]
"""Callback a hook uses to send one element to the subprocess."""

PreHook = Callable[[EmitFn], None]
"""Called once before the first element; may emit framing elements."""

PostHook = Callable[[Any, EmitFn], None]
"""Called per upstream element; emits zero or more elements in its place."""

DEFAULT_BUFFER_SIZE = 8192
DEFAULT_WORKING_DIR_ROOT = Path("tasks")


def tokenize_command(command: str) -> list[str]:
    """Split a command string on runs of whitespace.

    No shell quoting is interpreted: "wc -l" becomes ["wc", "-l"].
    """
    return command.split()


@dataclass(frozen=True)
class PipeSpec:
    """Configuration for piping partitions through an external command.

    Attributes:
        command: Argument vector; command[0] is the executable. A string is
            tokenized on whitespace.
        env: Environment variable overrides layered over the caller's
            environment
        working_dir: INHERIT (caller's cwd) or ISOLATED (per-task directory)
        encoding: Character encoding for text serializers
        buffer_size: Buffer size for the subprocess pipes, in bytes
        pre_hook: Optional hook run once before the first element
        post_hook: Optional hook run per element in place of direct encoding
        serializer: Strategy used to encode input and decode output
        stderr: Whether the subprocess's stderr is inherited or discarded
        working_dir_root: Parent of isolated working directories
        cleanup_working_dir: Remove the isolated directory when the run ends

    Raises:
        ValueError: If the command is empty or any setting is invalid
    """

    command: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    working_dir: WorkingDirMode = WorkingDirMode.INHERIT
    encoding: str = "utf-8"
    buffer_size: int = DEFAULT_BUFFER_SIZE
    pre_hook: PreHook | None = None
    post_hook: PostHook | None = None
    serializer: SerializationStrategy = field(default_factory=TextLineSerializer)
    stderr: StderrMode = StderrMode.INHERIT
    working_dir_root: Path = DEFAULT_WORKING_DIR_ROOT
    cleanup_working_dir: bool = False

    def __post_init__(self) -> None:
        command: str | Sequence[str] = self.command
        if isinstance(command, str):
            command = tokenize_command(command)
        command = tuple(command)
        if not command:
            raise ValueError("Pipe command must not be empty")
        for arg in command:
            if not isinstance(arg, str):
                raise ValueError(f"Pipe command arguments must be strings, got {type(arg).__name__}: {arg!r}")

        env = dict(self.env)
        for key, value in env.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValueError(f"Environment overrides must map str to str, got {key!r}: {value!r}")

        try:
            codecs.lookup(self.encoding)
        except LookupError as e:
            raise ValueError(f"Unknown encoding: {self.encoding!r}") from e

        if self.buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {self.buffer_size}")

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "command", command)
        object.__setattr__(self, "env", MappingProxyType(env))
        object.__setattr__(self, "working_dir", WorkingDirMode(self.working_dir))
        object.__setattr__(self, "stderr", StderrMode(self.stderr))
        object.__setattr__(self, "working_dir_root", Path(self.working_dir_root))

    @property
    def display_command(self) -> str:
        """The command joined with single spaces, for messages."""
        return " ".join(self.command)
