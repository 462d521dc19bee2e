"""Process session: launch one subprocess for one partition execution.

Responsibilities:
- Compose the subprocess environment (caller env + overrides + split hints)
- Optionally prepare an isolated working directory populated with symlinks
  to the task's staged files
- Start the subprocess, turning OS refusals into PipeLaunchError
- Own the resulting ProcessHandle's exit status and teardown

Isolation contract: an isolated directory is named from the task's stage,
partition and attempt identity, so concurrently running partitions never
share one. Re-preparing the same directory (same task identity) is a no-op.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import IO

import structlog

from shardpipe.contracts.context import TaskContext
from shardpipe.contracts.enums import StderrMode, WorkingDirMode
from shardpipe.contracts.errors import PipeExitError, PipeLaunchError
from shardpipe.pipe.spec import PipeSpec

logger = structlog.get_logger(__name__)


def compose_environment(
    overrides: Mapping[str, str],
    context: TaskContext | None = None,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the full environment for a subprocess.

    Precedence (lowest to highest):
    1. base (defaults to the caller's os.environ)
    2. configured overrides
    3. provenance hints from the task context (split source path)

    Args:
        overrides: Configured environment overrides
        context: Task context, if the host supplied one
        base: Starting environment; os.environ when None

    Returns:
        New dict; neither inputs nor os.environ are mutated
    """
    env = dict(os.environ if base is None else base)
    env.update(overrides)
    if context is not None:
        env.update(context.env_hints())
    return env


def prepare_isolated_working_dir(root: Path, context: TaskContext, staged_files: Iterable[Path]) -> Path:
    """Create a task-exclusive directory with symlinks to staged files.

    Args:
        root: Parent directory (relative roots resolve against the cwd)
        context: Task identity used to name the directory
        staged_files: Files to link into the directory, by basename

    Returns:
        Absolute path of the prepared directory

    Raises:
        OSError: If the directory or a symlink cannot be created
    """
    workdir = (root / context.working_dir_name()).absolute()
    workdir.mkdir(parents=True, exist_ok=True)

    for staged in staged_files:
        target = Path(staged).absolute()
        link = workdir / target.name
        if link.is_symlink() and Path(os.readlink(link)) == target:
            continue
        link.symlink_to(target)

    logger.debug("Prepared isolated working directory", path=str(workdir), partition_id=context.partition_id)
    return workdir


class ProcessHandle:
    """One live subprocess bound to one partition execution.

    The transform owns the handle. The feeder holds a reference to stdin and
    the decoder to stdout; neither closes the process.

    Exit status is obtained once: the first wait() blocks until termination,
    later calls return the cached code.
    """

    def __init__(
        self,
        process: subprocess.Popen[bytes],
        command: str,
        working_dir: Path | None = None,
        cleanup_working_dir: bool = False,
    ) -> None:
        self._process = process
        self._command = command
        self._working_dir = working_dir
        self._cleanup_working_dir = cleanup_working_dir
        self._exit_code: int | None = None
        self._wait_lock = threading.Lock()
        self._closed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def command(self) -> str:
        return self._command

    @property
    def working_dir(self) -> Path | None:
        """Isolated working directory, or None when inheriting the cwd."""
        return self._working_dir

    @property
    def stdin(self) -> IO[bytes] | None:
        return self._process.stdin

    @property
    def stdout(self) -> IO[bytes] | None:
        return self._process.stdout

    @property
    def exit_code(self) -> int | None:
        """Exit code once the process has been reaped, else None."""
        return self._exit_code

    def wait(self) -> int:
        """Block until the subprocess exits and return its exit code."""
        with self._wait_lock:
            if self._exit_code is None:
                self._exit_code = self._process.wait()
            return self._exit_code

    def check_exit(self) -> None:
        """Wait for the subprocess and raise on non-zero exit.

        Raises:
            PipeExitError: If the exit code is not 0
        """
        exit_code = self.wait()
        if exit_code != 0:
            logger.error("Subprocess exited with non-zero status", command=self._command, pid=self.pid, exit_code=exit_code)
            raise PipeExitError(self._command, exit_code)

    def kill(self) -> None:
        """Kill the subprocess if it is still running."""
        if self._process.poll() is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass  # Exited between poll() and kill()

    def close(self) -> None:
        """Release the handle: close stdout, reap the process, clean up.

        Safe to call more than once. Does not kill a running process;
        callers that abandon a run call kill() first.
        """
        if self._closed:
            return
        self._closed = True
        stdout = self._process.stdout
        if stdout is not None:
            stdout.close()
        self.wait()
        if self._cleanup_working_dir and self._working_dir is not None:
            shutil.rmtree(self._working_dir, ignore_errors=True)


class ProcessSession:
    """Builds and starts one subprocess, isolated from sibling partitions.

    Usage:
        session = ProcessSession(spec, context)
        handle = session.start()   # raises PipeLaunchError
    """

    def __init__(self, spec: PipeSpec, context: TaskContext | None = None) -> None:
        self._spec = spec
        self._context = context

    def environment(self) -> dict[str, str]:
        """Full environment the subprocess will run with."""
        return compose_environment(self._spec.env, self._context)

    def start(self) -> ProcessHandle:
        """Launch the subprocess.

        Returns:
            Handle with open stdin/stdout pipes

        Raises:
            PipeLaunchError: If isolation is requested without a task context,
                isolation setup fails or the OS refuses to start the process
        """
        spec = self._spec
        command = spec.display_command

        working_dir: Path | None = None
        if spec.working_dir == WorkingDirMode.ISOLATED:
            context = self._context
            if context is None:
                # Without task identity there is no name unique to this run
                error = ValueError("an isolated working directory requires a task context")
                logger.error("Cannot isolate subprocess", command=command, error=str(error))
                raise PipeLaunchError(command, error)
            try:
                working_dir = prepare_isolated_working_dir(spec.working_dir_root, context, context.staged_files)
            except OSError as e:
                logger.error("Failed to prepare isolated working directory", command=command, error=str(e))
                raise PipeLaunchError(command, e) from e

        stderr = subprocess.DEVNULL if spec.stderr == StderrMode.DISCARD else None
        try:
            process = subprocess.Popen(
                list(spec.command),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=stderr,
                env=self.environment(),
                cwd=working_dir,
                bufsize=spec.buffer_size,
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to launch subprocess", command=command, error=str(e))
            if working_dir is not None and spec.cleanup_working_dir:
                shutil.rmtree(working_dir, ignore_errors=True)
            raise PipeLaunchError(command, e) from e

        logger.debug(
            "Launched subprocess",
            command=command,
            pid=process.pid,
            partition_id=None if self._context is None else self._context.partition_id,
            working_dir=None if working_dir is None else str(working_dir),
        )
        return ProcessHandle(process, command, working_dir, spec.cleanup_working_dir)
