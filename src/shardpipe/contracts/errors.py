"""Error taxonomy for pipe execution.

Every failure a partition's consumer can observe is a PipeError subclass
whose message contains the full command text. The one exception is
FramingError, which is raised by the raw framed serializer at the exact
point of the bad frame and knows nothing about commands.

Taxonomy:
- PipeLaunchError: the subprocess could not be started (bad executable,
  permission denied, isolated working directory setup failed)
- PipeExitError: the subprocess ran and exited with a non-zero status
- PipeFeederError: the upstream element source (or the write into the
  subprocess's stdin) failed while feeding
- PipeCancelledError: the run was cancelled before it finished

No error in this package is retried internally.
"""

from __future__ import annotations

from dataclasses import dataclass

from shardpipe.contracts.enums import FeederPhase


@dataclass(frozen=True)
class FeederFailure:
    """A failure captured by the input feeder thread.

    Held by the feeder until the consumer side checks for it at
    end-of-output.

    Attributes:
        error: The exception raised while feeding
        phase: Where the feeder was when it failed
    """

    error: BaseException
    phase: FeederPhase

    def describe(self) -> str:
        return f"{type(self.error).__name__} during {self.phase}: {self.error}"


class PipeError(Exception):
    """Base class for failures of a pipe execution.

    Attributes:
        command: The command that was run, joined with spaces for display
    """

    def __init__(self, command: str, message: str) -> None:
        super().__init__(message)
        self.command = command


class PipeLaunchError(PipeError):
    """Raised when the subprocess could not be launched.

    Reported on the first pull, before any output is yielded.
    """

    def __init__(self, command: str, cause: BaseException) -> None:
        super().__init__(command, f"Failed to launch command '{command}': {cause}")
        self.cause = cause


class PipeExitError(PipeError):
    """Raised when the subprocess exited with a non-zero status.

    Reported only after every output element the subprocess produced has
    been drained by the consumer.
    """

    def __init__(self, command: str, exit_code: int) -> None:
        super().__init__(command, f"Subprocess exited with status {exit_code}. Command ran: {command}")
        self.exit_code = exit_code


class PipeFeederError(PipeError):
    """Raised when feeding the subprocess failed.

    The original exception is available as ``failure.error`` and is also
    chained as ``__cause__``.
    """

    def __init__(self, command: str, failure: FeederFailure) -> None:
        super().__init__(command, f"Failed while feeding input to command '{command}': {failure.describe()}")
        self.failure = failure


class PipeCancelledError(PipeError):
    """Raised by a pull that observes cancellation of the run."""

    def __init__(self, command: str) -> None:
        super().__init__(command, f"Pipe to command '{command}' was cancelled")


class FramingError(ValueError):
    """Raised when length-prefixed data on a pipe is malformed.

    Either a declared length is negative or the stream ended before the
    declared number of bytes was available.
    """

    pass
