"""Newline-delimited text serialization.

Each element is written as str(element) followed by a single newline in the
configured encoding. Output is read back one line at a time with the line
terminator removed.

The strategy guarantees line boundaries only. Tools such as `wc` may emit
several whitespace-separated tokens per line; use iter_tokens() on the
decoded lines to treat those tokens uniformly.
"""

from __future__ import annotations

import io
from collections.abc import Iterable, Iterator
from typing import IO, Any

from shardpipe.plugins.sentinels import END_OF_STREAM, EndOfStreamSentinel
from shardpipe.plugins.serializers.base import SerializationStrategy


class TextLineSerializer(SerializationStrategy):
    """Line-oriented text strategy (the default).

    Reading uses universal newlines, so "\\n", "\\r\\n" and a lone "\\r" all
    end a line. A final line without a terminator is still returned.
    """

    name = "text"

    def open_writer(self, raw: IO[bytes], *, encoding: str) -> IO[Any]:
        # newline="\n" disables translation: exactly one "\n" per element
        return io.TextIOWrapper(raw, encoding=encoding, newline="\n")  # type: ignore[arg-type]

    def open_reader(self, raw: IO[bytes], *, encoding: str) -> IO[Any]:
        return io.TextIOWrapper(raw, encoding=encoding, newline=None)  # type: ignore[arg-type]

    def encode(self, element: Any, stream: IO[Any]) -> None:
        stream.write(f"{element}\n")

    def decode(self, stream: IO[Any]) -> str | EndOfStreamSentinel:
        line: str = stream.readline()
        if not line:
            return END_OF_STREAM
        if line.endswith("\n"):
            return line[:-1]
        return line


def iter_tokens(lines: Iterable[str]) -> Iterator[str]:
    """Yield whitespace-delimited tokens across all lines.

    Args:
        lines: Decoded lines, typically the output of a text pipe

    Yields:
        Each non-empty token in order of appearance
    """
    for line in lines:
        yield from line.split()
