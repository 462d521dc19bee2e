# src/shardpipe/plugins/hookspecs.py
"""pluggy hook specifications for shardpipe plugins.

Plugins implement these hooks to register serialization strategies.
The plugin manager calls these hooks during registration.

Usage (implementing a plugin):
    from shardpipe.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def shardpipe_get_serializers(self):
            return [MySerializer]

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks plugin implementations of those hooks.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from shardpipe.plugins.serializers.base import SerializationStrategy

# Project name for pluggy
PROJECT_NAME = "shardpipe"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class ShardpipeSerializerSpec:
    """Hook specifications for serialization strategy plugins."""

    @hookspec
    def shardpipe_get_serializers(self) -> list[type["SerializationStrategy"]]:  # type: ignore[empty-body]
        """Return serialization strategy classes.

        Returns:
            List of SerializationStrategy classes (not instances)
        """
