"""Length-prefixed binary serialization of key/value byte pairs.

Wire layout per element, in order:

    +----------------+-----------+------------------+-------------+
    | key length     | key bytes | value length     | value bytes |
    | int32, BE      |           | int32, BE        |             |
    +----------------+-----------+------------------+-------------+

Lengths are signed. A negative declared length, or a stream that ends
before the declared number of bytes is available, is a FramingError. A
stream that ends exactly on a record boundary is a clean end-of-stream.
"""

from __future__ import annotations

import struct
from typing import IO, Any

from shardpipe.contracts.errors import FramingError
from shardpipe.plugins.sentinels import END_OF_STREAM, EndOfStreamSentinel
from shardpipe.plugins.serializers.base import SerializationStrategy

_LENGTH = struct.Struct(">i")

KeyValue = tuple[bytes, bytes]


def _read_exact(stream: IO[bytes], size: int, what: str) -> bytes:
    """Read exactly `size` bytes or raise FramingError.

    Pipe reads may return fewer bytes than requested, so keep reading
    until the frame is complete or the stream hits EOF.
    """
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            got = size - remaining
            raise FramingError(f"Stream ended while reading {what}: expected {size} bytes, got {got}")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _as_bytes(part: Any, what: str) -> bytes:
    if isinstance(part, (bytes, bytearray, memoryview)):
        return bytes(part)
    raise TypeError(f"Raw framed {what} must be bytes-like, got {type(part).__name__}")


class RawBytesSerializer(SerializationStrategy):
    """Framed key/value strategy.

    Elements written must be (key, value) pairs of bytes-like objects.
    Elements read are (key, value) tuples of bytes. The configured
    character encoding is ignored.
    """

    name = "raw"

    def encode(self, element: Any, stream: IO[bytes]) -> None:
        if not isinstance(element, tuple) or len(element) != 2:
            raise TypeError(f"Raw framed element must be a (key, value) pair, got {type(element).__name__}")
        key = _as_bytes(element[0], "key")
        value = _as_bytes(element[1], "value")
        stream.write(_LENGTH.pack(len(key)))
        stream.write(key)
        stream.write(_LENGTH.pack(len(value)))
        stream.write(value)

    def decode(self, stream: IO[bytes]) -> KeyValue | EndOfStreamSentinel:
        first = stream.read(1)
        if not first:
            return END_OF_STREAM
        header = first + _read_exact(stream, _LENGTH.size - 1, "key length")
        key = self._read_payload(stream, header, "key")
        value_header = _read_exact(stream, _LENGTH.size, "value length")
        value = self._read_payload(stream, value_header, "value")
        return key, value

    @staticmethod
    def _read_payload(stream: IO[bytes], header: bytes, what: str) -> bytes:
        (length,) = _LENGTH.unpack(header)
        if length < 0:
            raise FramingError(f"Negative {what} length in frame: {length}")
        return _read_exact(stream, length, what)
