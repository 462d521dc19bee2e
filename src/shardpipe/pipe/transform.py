"""Pipe transform: one partition through one external process.

State machine (single use, no transition reachable twice):

    NOT_STARTED --first pull--> RUNNING --end of output--> DRAINING
        |                          |                           |
        | launch failure           | decode failure            +--> SUCCEEDED
        v                          v                           +--> FAILED
      FAILED                     FAILED
    (any non-terminal state) --cancel()--> CANCELLED

Draining order is load-bearing:
1. Join the feeder; a captured FeederFailure raises PipeFeederError.
   Cancellation interrupts this wait.
2. Wait for the exit status; non-zero raises PipeExitError
3. Otherwise the iteration ends cleanly

Both checks happen only after every output element has been pulled, so
partial output produced before a failure always reaches the consumer.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from types import TracebackType
from typing import Any, NoReturn

import structlog

from shardpipe.contracts.context import TaskContext
from shardpipe.contracts.enums import PipeState
from shardpipe.contracts.errors import FeederFailure, PipeCancelledError, PipeError, PipeFeederError
from shardpipe.pipe.decoder import OutputDecoder
from shardpipe.pipe.feeder import InputFeeder
from shardpipe.pipe.session import ProcessHandle, ProcessSession
from shardpipe.pipe.spec import PipeSpec

logger = structlog.get_logger(__name__)

# Seconds between cancellation checks while waiting for the feeder
_FEEDER_JOIN_INTERVAL = 0.05


class PipeTransform(Iterator[Any]):
    """Replace one partition's elements with an external command's output.

    The subprocess and the feeder thread start on the first pull. The
    consumer drives the output decoder; failures surface as a single
    terminal PipeError (or FramingError for malformed raw frames).

    Usage:
        with PipeTransform(spec, elements, context) as out:
            for line in out:
                handle(line)

    Args:
        spec: Pipe configuration
        elements: Upstream elements for this partition, consumed lazily by
            the feeder thread
        context: Partition identity and provenance from the host
    """

    def __init__(self, spec: PipeSpec, elements: Iterable[Any], context: TaskContext | None = None) -> None:
        self._spec = spec
        self._elements = elements
        self._context = context
        self._command = spec.display_command

        self._state = PipeState.NOT_STARTED
        self._state_lock = threading.Lock()
        self._handle: ProcessHandle | None = None
        self._feeder: InputFeeder | None = None
        self._decoder: OutputDecoder[Any] | None = None
        self._cancelled = threading.Event()

        partition_id = None if context is None else context.partition_id
        self._log = logger.bind(command=self._command, partition_id=partition_id)

    @property
    def state(self) -> PipeState:
        return self._state

    @property
    def handle(self) -> ProcessHandle | None:
        """The live process handle, once started."""
        return self._handle

    # === Iterator protocol ===

    def __iter__(self) -> PipeTransform:
        return self

    def __next__(self) -> Any:
        if self._cancelled.is_set() and self._state not in (PipeState.SUCCEEDED, PipeState.FAILED):
            self._finish_cancelled()
        if self._state == PipeState.NOT_STARTED:
            self._start()
        if self._state.is_terminal or self._decoder is None:
            raise StopIteration
        return next(self._decoder)

    # === Lifecycle ===

    def _transition(self, new_state: PipeState) -> None:
        with self._state_lock:
            if self._state.is_terminal:
                return
            self._state = new_state

    def _start(self) -> None:
        """NOT_STARTED -> RUNNING, or FAILED on launch failure."""
        spec = self._spec
        try:
            handle = ProcessSession(spec, self._context).start()
        except PipeError:
            self._transition(PipeState.FAILED)
            raise

        assert handle.stdin is not None and handle.stdout is not None
        self._handle = handle
        self._feeder = InputFeeder(
            self._elements,
            handle.stdin,
            spec.serializer,
            command=self._command,
            encoding=spec.encoding,
            pre_hook=spec.pre_hook,
            post_hook=spec.post_hook,
        )
        reader = spec.serializer.open_reader(handle.stdout, encoding=spec.encoding)
        self._decoder = OutputDecoder(
            reader,
            spec.serializer,
            on_exhausted=self._drain,
            on_error=self._abort,
        )
        self._transition(PipeState.RUNNING)
        self._feeder.start()
        self._log.debug("Pipe running", pid=handle.pid)

        # cancel() sets the flag before it reads self._handle: either it saw
        # the handle and killed it, or this check sees the flag.
        if self._cancelled.is_set():
            self._finish_cancelled()

    def _join_feeder(self) -> FeederFailure | None:
        """Wait for the feeder, giving up as soon as the run is cancelled."""
        assert self._feeder is not None
        while True:
            failure = self._feeder.join(_FEEDER_JOIN_INTERVAL)
            if self._cancelled.is_set():
                self._finish_cancelled()
            if not self._feeder.is_alive():
                return failure

    def _drain(self) -> None:
        """RUNNING -> DRAINING -> SUCCEEDED | FAILED | CANCELLED."""
        self._transition(PipeState.DRAINING)
        assert self._handle is not None

        failure = self._join_feeder()
        if failure is not None:
            # The subprocess may still be waiting on input that never comes
            self._handle.kill()
            self._finish(PipeState.FAILED)
            raise PipeFeederError(self._command, failure) from failure.error

        try:
            self._handle.check_exit()
        except PipeError:
            self._finish(PipeState.FAILED)
            raise

        self._finish(PipeState.SUCCEEDED)
        self._log.debug("Pipe finished", decoded=self._decoder.decoded if self._decoder else 0)

    def _abort(self, error: BaseException) -> None:
        """Tear down after a decode failure; the error propagates afterwards."""
        self._log.error("Failed to decode subprocess output", error=str(error), error_type=type(error).__name__)
        self._terminate()
        self._finish(PipeState.FAILED)

    def _terminate(self) -> None:
        if self._feeder is not None:
            self._feeder.stop()
        if self._handle is not None:
            self._handle.kill()

    def _finish(self, final_state: PipeState) -> None:
        """Enter a terminal state and release the process handle.

        The feeder thread is not joined here: it may be parked on an upstream
        iterator that never yields. It runs as a daemon and has been asked
        to stop.
        """
        self._transition(final_state)
        if self._handle is not None:
            self._handle.close()

    def _finish_cancelled(self) -> NoReturn:
        self._terminate()
        self._finish(PipeState.CANCELLED)
        raise PipeCancelledError(self._command)

    def cancel(self) -> None:
        """Cancel the run: stop the feeder and kill the subprocess.

        Safe to call from another thread. A pull that is blocked on output
        returns once the subprocess dies and raises PipeCancelledError, as
        does every later pull, including one made before the run started.
        """
        if self._state.is_terminal:
            return
        self._cancelled.set()
        self._log.info("Cancelling pipe")
        if self._handle is None:
            self._transition(PipeState.CANCELLED)
            return
        self._terminate()

    def close(self) -> None:
        """Release all resources, cancelling an unfinished run.

        Closing a transform that never started launches nothing and makes
        later pulls end quietly.
        """
        if self._state == PipeState.NOT_STARTED and not self._cancelled.is_set():
            self._transition(PipeState.CANCELLED)
            return
        if self._handle is None:
            return
        if not self._state.is_terminal:
            self.cancel()
        self._finish(PipeState.CANCELLED)

    def __enter__(self) -> PipeTransform:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
