# src/shardpipe/plugins/manager.py
"""Serializer plugin manager for registration and lookup.

Uses pluggy for hook-based plugin registration.
"""

from typing import Any

import pluggy

from shardpipe.plugins.hookspecs import PROJECT_NAME, ShardpipeSerializerSpec, hookimpl
from shardpipe.plugins.serializers import BUILTIN_SERIALIZERS
from shardpipe.plugins.serializers.base import SerializationStrategy


class _BuiltinSerializers:
    """Hook implementer for the serializers shipped with shardpipe."""

    @hookimpl
    def shardpipe_get_serializers(self) -> list[type[SerializationStrategy]]:
        return list(BUILTIN_SERIALIZERS)


class SerializerManager:
    """Manages serialization strategy registration and lookup.

    Usage:
        manager = SerializerManager()
        manager.register_builtin_plugins()

        serializer = manager.create("raw")
        names = manager.names()
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(ShardpipeSerializerSpec)

        # Cache - map name to strategy class for duplicate detection
        self._serializers: dict[str, type[SerializationStrategy]] = {}

    def register_builtin_plugins(self) -> None:
        """Register the built-in text and raw strategies.

        Call this once at startup.
        """
        self.register(_BuiltinSerializers())

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing shardpipe_get_serializers

        Raises:
            ValueError: If a strategy with the same name is already registered
        """
        self._pm.register(plugin)
        try:
            self._refresh_cache()
        except ValueError:
            # Leave the manager in its previous, consistent state
            self._pm.unregister(plugin)
            raise

    def _refresh_cache(self) -> None:
        """Refresh the strategy cache from hooks.

        Raises:
            ValueError: If two plugins provide strategies with the same name
        """
        new_serializers: dict[str, type[SerializationStrategy]] = {}

        for serializers in self._pm.hook.shardpipe_get_serializers():
            for cls in serializers:
                name = cls.name
                if name in new_serializers:
                    raise ValueError(
                        f"Duplicate serializer plugin name: '{name}'. Already registered by {new_serializers[name].__name__}"
                    )
                new_serializers[name] = cls

        self._serializers = new_serializers

    # === Getters ===

    def get_serializers(self) -> list[type[SerializationStrategy]]:
        """Get all registered strategy classes."""
        return list(self._serializers.values())

    def names(self) -> list[str]:
        """Registered strategy names, sorted."""
        return sorted(self._serializers)

    def get_serializer_by_name(self, name: str) -> type[SerializationStrategy] | None:
        """Get strategy class by name."""
        return self._serializers.get(name)

    def create(self, name: str) -> SerializationStrategy:
        """Instantiate the strategy registered under `name`.

        Raises:
            ValueError: If no strategy has that name
        """
        cls = self.get_serializer_by_name(name)
        if cls is None:
            raise ValueError(f"Unknown serializer '{name}'. Available: {', '.join(self.names()) or '(none)'}")
        return cls()
