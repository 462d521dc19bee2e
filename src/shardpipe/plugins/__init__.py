"""Plugin system: serialization strategies and their pluggy registry."""

from shardpipe.plugins.hookspecs import hookimpl, hookspec
from shardpipe.plugins.manager import SerializerManager
from shardpipe.plugins.sentinels import END_OF_STREAM
from shardpipe.plugins.serializers import (
    RawBytesSerializer,
    SerializationStrategy,
    TextLineSerializer,
    iter_tokens,
)

__all__ = [
    "END_OF_STREAM",
    "RawBytesSerializer",
    "SerializationStrategy",
    "SerializerManager",
    "TextLineSerializer",
    "hookimpl",
    "hookspec",
    "iter_tokens",
]
