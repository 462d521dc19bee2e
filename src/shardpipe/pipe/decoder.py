"""Output decoder: lazy, pull-based iteration over the subprocess's stdout.

Each next() decodes one element through the serialization strategy. When
the strategy reports END_OF_STREAM the decoder runs its finalizer exactly
once; the finalizer checks the feeder and the exit status and raises if
either failed. Only when it returns does iteration stop cleanly.

Output already yielded is never retracted: a failure discovered at
end-of-output is raised after the consumer has pulled every element the
subprocess produced.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import IO, Any, Generic, TypeVar

from shardpipe.plugins.sentinels import END_OF_STREAM
from shardpipe.plugins.serializers.base import SerializationStrategy

T = TypeVar("T")


class OutputDecoder(Iterator[T], Generic[T]):
    """Finite, non-restartable iterator of decoded subprocess output.

    Args:
        stream: Reader returned by serializer.open_reader()
        serializer: Strategy used to decode each element
        on_exhausted: Finalizer run once at end-of-output; raises to fail
        on_error: Called once if decoding itself raises, before the error
            propagates (used to tear down the subprocess)
    """

    def __init__(
        self,
        stream: IO[Any],
        serializer: SerializationStrategy,
        *,
        on_exhausted: Callable[[], None],
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self._stream = stream
        self._serializer = serializer
        self._on_exhausted = on_exhausted
        self._on_error = on_error
        self._finished = False
        self._decoded = 0

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def decoded(self) -> int:
        """Number of elements yielded so far."""
        return self._decoded

    def __iter__(self) -> OutputDecoder[T]:
        return self

    def __next__(self) -> T:
        if self._finished:
            raise StopIteration

        try:
            item = self._serializer.decode(self._stream)
        except Exception as e:
            self._finished = True
            if self._on_error is not None:
                self._on_error(e)
            raise

        if item is END_OF_STREAM:
            self._finished = True
            self._on_exhausted()
            raise StopIteration

        self._decoded += 1
        result: T = item
        return result
