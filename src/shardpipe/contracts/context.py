"""Per-partition execution context supplied by the host.

The pipe transform never decides partition identity itself. The host
(see shardpipe.engine.local) hands each partition evaluation a TaskContext
describing which partition is running, which attempt this is, where the
partition's data came from, and which files were staged for it.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

# Environment variables carrying a file split's source path. The first is the
# legacy name, the second the namespaced one; tools may read either.
MAP_INPUT_FILE_ENV = "map_input_file"
MAPREDUCE_MAP_INPUT_FILE_ENV = "mapreduce_map_input_file"


@dataclass(frozen=True)
class FileSplit:
    """Provenance of a partition read from a file.

    Attributes:
        path: Source file path
        start: Byte offset of the split within the file
        length: Number of bytes in the split (0 means "to end of file")
        hosts: Preferred locations, informational only
    """

    path: str
    start: int = 0
    length: int = 0
    hosts: tuple[str, ...] = ()

    def pipe_env_vars(self) -> dict[str, str]:
        """Environment variables that expose this split to an invoked program."""
        return {
            MAP_INPUT_FILE_ENV: self.path,
            MAPREDUCE_MAP_INPUT_FILE_ENV: self.path,
        }


@dataclass(frozen=True)
class TaskContext:
    """Identity of one partition evaluation.

    Attributes:
        partition_id: Index of the partition within its dataset
        attempt_id: Attempt number for this partition (0 for the first)
        stage_id: Identifier of the evaluation this task belongs to.
            Two concurrent evaluations of the same dataset get different
            stage ids, so their tasks never share an isolated directory.
        split: File split the partition was read from, if any
        staged_files: Files staged for this task; symlinked into isolated
            working directories

    Resources opened for the task (pipe transforms and their processes)
    register a completion callback. The host calls mark_completed() when
    the task ends, however it ends, so a partially consumed partition
    still releases them.
    """

    partition_id: int
    attempt_id: int = 0
    stage_id: int = 0
    split: FileSplit | None = None
    staged_files: tuple[Path, ...] = field(default_factory=tuple)
    _completion_callbacks: list[Callable[[], None]] = field(default_factory=list, init=False, repr=False, compare=False)
    _callbacks_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def env_hints(self) -> dict[str, str]:
        """Environment variables derived from the partition's provenance."""
        if self.split is None:
            return {}
        return self.split.pipe_env_vars()

    def working_dir_name(self) -> str:
        """Directory name unique to this task within the host process.

        The host pid is included so that separate host processes sharing a
        working directory root do not collide either.
        """
        return f"stage-{self.stage_id}-partition-{self.partition_id}-attempt-{self.attempt_id}-{os.getpid()}"

    def add_completion_callback(self, callback: Callable[[], None]) -> None:
        """Run callback when the task completes."""
        with self._callbacks_lock:
            self._completion_callbacks.append(callback)

    def mark_completed(self) -> None:
        """Run and clear the completion callbacks, most recent first.

        Every callback runs even if an earlier one raises; the first error
        is re-raised afterwards.
        """
        with self._callbacks_lock:
            callbacks = self._completion_callbacks[::-1]
            self._completion_callbacks.clear()

        first_error: Exception | None = None
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
