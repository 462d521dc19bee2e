"""Modes and states shared across the pipe subsystems."""

from enum import StrEnum


class WorkingDirMode(StrEnum):
    """Where the subprocess runs.

    INHERIT runs in the caller's current directory. ISOLATED creates a
    directory exclusive to one partition execution and runs there.
    """

    INHERIT = "inherit"
    ISOLATED = "isolated"


class StderrMode(StrEnum):
    """What happens to the subprocess's standard error.

    The pipe never reads stderr itself.
    """

    INHERIT = "inherit"
    DISCARD = "discard"


class PipeState(StrEnum):
    """Lifecycle of a single-use pipe transform.

    NOT_STARTED -> RUNNING -> DRAINING -> SUCCEEDED | FAILED.
    CANCELLED is reachable from any non-terminal state.
    """

    NOT_STARTED = "not_started"
    RUNNING = "running"
    DRAINING = "draining"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PipeState.SUCCEEDED, PipeState.FAILED, PipeState.CANCELLED)


class FeederPhase(StrEnum):
    """Where the input feeder was when it failed."""

    PRE_HOOK = "pre_hook"
    UPSTREAM = "upstream"
    WRITE = "write"
    CLOSE = "close"
