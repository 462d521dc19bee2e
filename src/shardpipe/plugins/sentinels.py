"""Shared sentinel values for the serializer plugins.

Serializers signal end-of-output with END_OF_STREAM rather than None,
because None (or any other value) may be a legitimate decoded element.

Example usage:
    from shardpipe.plugins.sentinels import END_OF_STREAM

    item = serializer.decode(stream)
    if item is END_OF_STREAM:
        # Subprocess closed its stdout
        finish()
"""

from typing import Final


class EndOfStreamSentinel:
    """Sentinel class marking the end of a decoded stream.

    This is a singleton - use the END_OF_STREAM instance, not the class directly.
    Comparison should always use `is` identity, never equality.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "<END_OF_STREAM>"


END_OF_STREAM: Final[EndOfStreamSentinel] = EndOfStreamSentinel()
"""Singleton sentinel returned by decode() when the stream is exhausted.

Use identity comparison: `if item is END_OF_STREAM:`
"""
