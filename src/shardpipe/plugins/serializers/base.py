"""Base class for serialization strategies.

A serialization strategy converts elements to bytes written into a
subprocess's stdin and parses elements back out of its stdout. The pipe
transform selects a strategy by configuration; it never subclasses itself
to change the wire format.

Lifecycle per partition execution:
    writer = strategy.open_writer(process.stdin, encoding=...)
    strategy.encode(element, writer)       # feeder thread, once per element
    writer.close()

    reader = strategy.open_reader(process.stdout, encoding=...)
    item = strategy.decode(reader)         # consumer thread, once per pull
    ... until item is END_OF_STREAM

Strategy instances hold configuration only. Any per-stream state (text
decoders, buffers) lives in the stream objects returned by open_writer()
and open_reader(), so one strategy instance can serve many concurrent
partitions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import IO, Any, ClassVar

from shardpipe.plugins.sentinels import EndOfStreamSentinel


class SerializationStrategy(ABC):
    """Encode/decode pair bound to a subprocess's pipes.

    Subclasses must set `name` (the registry key) and implement
    encode() and decode().
    """

    name: ClassVar[str]
    plugin_version: ClassVar[str] = "1.0.0"

    def open_writer(self, raw: IO[bytes], *, encoding: str) -> IO[Any]:
        """Wrap the subprocess's binary stdin for encode().

        Default: write bytes directly.
        """
        return raw

    def open_reader(self, raw: IO[bytes], *, encoding: str) -> IO[Any]:
        """Wrap the subprocess's binary stdout for decode().

        Default: read bytes directly.
        """
        return raw

    @abstractmethod
    def encode(self, element: Any, stream: IO[Any]) -> None:
        """Write one element to the stream returned by open_writer()."""

    @abstractmethod
    def decode(self, stream: IO[Any]) -> Any | EndOfStreamSentinel:
        """Read one element from the stream returned by open_reader().

        Returns:
            The next element, or END_OF_STREAM once the stream is exhausted.
        """
