"""
Capability registry.

The surrounding application registers one plugin instance per capability
provider for the current conversation turn. Lookups by plugin name are
case-insensitive. Validation and execution only read from the registry.
"""

from __future__ import annotations

from collections.abc import Iterator

from toolwarden.core.models import ToolDefinition
from toolwarden.core.plugins import build_tool_definition
from toolwarden.core.ports import PluginPort


class PluginRegistry:
    """Maintains a case-insensitive collection of plugins."""

    def __init__(self, plugins: list[PluginPort] | None = None) -> None:
        self._plugins: dict[str, PluginPort] = {}
        self._definitions_cache: list[ToolDefinition] | None = None
        for plugin in plugins or []:
            self.register(plugin)

    def register(self, plugin: PluginPort) -> None:
        """Register a plugin. Raises ValueError on duplicate names."""
        key = plugin.name.lower()
        if key in self._plugins:
            raise ValueError(f"Plugin '{plugin.name}' is already registered")
        self._plugins[key] = plugin
        self._definitions_cache = None

    def get(self, name: str) -> PluginPort | None:
        return self._plugins.get(name.lower())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._plugins

    def __iter__(self) -> Iterator[PluginPort]:
        return iter(self._plugins.values())

    def __len__(self) -> int:
        return len(self._plugins)

    def get_definitions(self) -> list[ToolDefinition]:
        """Return OpenAI-format tool definitions for every plugin function."""
        if self._definitions_cache is None:
            self._definitions_cache = [
                build_tool_definition(plugin.name, spec)
                for plugin in self._plugins.values()
                for spec in plugin.functions
            ]
        return list(self._definitions_cache)
