"""Built-in serialization strategies."""

from shardpipe.plugins.serializers.base import SerializationStrategy
from shardpipe.plugins.serializers.raw import RawBytesSerializer
from shardpipe.plugins.serializers.text import TextLineSerializer, iter_tokens

BUILTIN_SERIALIZERS: tuple[type[SerializationStrategy], ...] = (
    TextLineSerializer,
    RawBytesSerializer,
)

__all__ = [
    "BUILTIN_SERIALIZERS",
    "RawBytesSerializer",
    "SerializationStrategy",
    "TextLineSerializer",
    "iter_tokens",
]
