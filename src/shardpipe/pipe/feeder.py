"""Input feeder: drains the upstream elements into the subprocess's stdin.

The feeder runs on its own thread so that writing stdin and reading stdout
never wait on each other. Without it, a subprocess that fills its stdout
buffer while the host is blocked writing its stdin deadlocks both sides.

Protocol:
1. Run the pre-hook once; every element it emits is encoded and written.
2. For each upstream element run the post-hook (or emit the element as-is);
   encode and write everything emitted.
3. Close stdin to signal end-of-input.
4. On any failure capture a FeederFailure, close stdin anyway, stop. The
   failure is NOT raised on the feeder thread; the consumer observes it via
   join() at end-of-output.

Thread Model:
    - Feeder thread: pulls upstream, encodes, writes, closes stdin
    - Consumer thread: calls start(), later join(); may call stop()
    The failure slot is written by the feeder thread only, under a lock,
    at most once.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import IO, Any

import structlog

from shardpipe.contracts.enums import FeederPhase
from shardpipe.contracts.errors import FeederFailure
from shardpipe.pipe.spec import PostHook, PreHook
from shardpipe.plugins.serializers.base import SerializationStrategy

logger = structlog.get_logger(__name__)


class _FeedingStopped(Exception):
    """Internal signal: the subprocess stopped reading, or stop() was called."""


class InputFeeder:
    """Dedicated writer thread for one partition's subprocess.

    Usage:
        feeder = InputFeeder(elements, handle.stdin, serializer, command="cat", encoding="utf-8")
        feeder.start()
        ...                         # consumer reads stdout meanwhile
        failure = feeder.join()     # None on success
    """

    def __init__(
        self,
        elements: Iterable[Any],
        stream: IO[bytes],
        serializer: SerializationStrategy,
        *,
        command: str,
        encoding: str,
        pre_hook: PreHook | None = None,
        post_hook: PostHook | None = None,
    ) -> None:
        self._elements = elements
        self._raw_stream = stream
        self._serializer = serializer
        self._command = command
        self._encoding = encoding
        self._pre_hook = pre_hook
        self._post_hook = post_hook

        self._writer: IO[Any] | None = None
        self._phase = FeederPhase.PRE_HOOK
        self._failure: FeederFailure | None = None
        self._failure_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._closed = False
        self._written = 0

        self._thread = threading.Thread(
            target=self._run,
            name=f"stdin writer for {command}",
            daemon=True,
        )

    @property
    def failure(self) -> FeederFailure | None:
        """Captured failure, or None. Meaningful after join()."""
        with self._failure_lock:
            return self._failure

    @property
    def written(self) -> int:
        """Number of elements encoded into the subprocess's stdin so far."""
        return self._written

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        """Ask the feeder to stop before the next element.

        A write already blocked on a full pipe is released when the
        subprocess dies or its stdin is closed by the kernel.
        """
        self._stop_requested.set()

    def join(self, timeout: float | None = None) -> FeederFailure | None:
        """Wait for the feeder thread to finish.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            The captured failure, or None if feeding succeeded
        """
        self._thread.join(timeout)
        return self.failure

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _record(self, error: BaseException, phase: FeederPhase) -> None:
        with self._failure_lock:
            if self._failure is None:
                self._failure = FeederFailure(error=error, phase=phase)

    def _emit(self, element: Any) -> None:
        """Encode one element into the subprocess's stdin."""
        if self._stop_requested.is_set():
            raise _FeedingStopped()
        previous = self._phase
        self._phase = FeederPhase.WRITE
        try:
            assert self._writer is not None
            self._serializer.encode(element, self._writer)
        except BrokenPipeError as e:
            raise _FeedingStopped() from e
        self._written += 1
        self._phase = previous

    def _run(self) -> None:
        try:
            self._writer = self._serializer.open_writer(self._raw_stream, encoding=self._encoding)
            if self._pre_hook is not None:
                self._pre_hook(self._emit)

            self._phase = FeederPhase.UPSTREAM
            for element in self._elements:
                if self._stop_requested.is_set():
                    break
                if self._post_hook is not None:
                    self._post_hook(element, self._emit)
                else:
                    self._emit(element)
        except _FeedingStopped:
            logger.debug("Stopped feeding subprocess input", command=self._command, written=self._written)
        except Exception as e:
            logger.error(
                "Input feeder failed",
                command=self._command,
                phase=str(self._phase),
                error=str(e),
                error_type=type(e).__name__,
            )
            self._record(e, self._phase)
        finally:
            self._close()

    def _close(self) -> None:
        """Close stdin exactly once without masking an earlier failure."""
        if self._closed:
            return
        self._closed = True
        stream = self._writer if self._writer is not None else self._raw_stream
        try:
            stream.close()
        except BrokenPipeError:
            # Buffered bytes had nowhere to go: the subprocess stopped reading
            pass
        except Exception as e:
            self._record(e, FeederPhase.CLOSE)
