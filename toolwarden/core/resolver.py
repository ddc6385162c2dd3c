"""Resolve a (plugin, function) name pair to a concrete callable."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from toolwarden.core.models import ResolvedCall
from toolwarden.core.registry import PluginRegistry


class ResolutionErrorKind(Enum):
    MISSING_PLUGIN_NAME = "missing_plugin_name"
    MISSING_FUNCTION_NAME = "missing_function_name"
    UNKNOWN_PLUGIN = "unknown_plugin"
    UNKNOWN_FUNCTION = "unknown_function"


@dataclass(frozen=True)
class ResolutionFailure:
    """Why a call could not be resolved. Returned, never raised."""

    kind: ResolutionErrorKind
    message: str


def resolve(
    registry: PluginRegistry, plugin_name: str | None, function_name: str | None
) -> ResolvedCall | ResolutionFailure:
    """
    Look up the function a call refers to.

    Plugin and function names are matched case-insensitively. This is a pure
    lookup with no side effects.

    Returns:
        ResolvedCall on success, otherwise a ResolutionFailure whose message is
        suitable for the audit trail.
    """
    if not plugin_name or not plugin_name.strip():
        return ResolutionFailure(ResolutionErrorKind.MISSING_PLUGIN_NAME, "Plugin name is missing.")
    if not function_name or not function_name.strip():
        return ResolutionFailure(
            ResolutionErrorKind.MISSING_FUNCTION_NAME, "Function name is missing."
        )

    plugin = registry.get(plugin_name)
    if plugin is None:
        return ResolutionFailure(
            ResolutionErrorKind.UNKNOWN_PLUGIN, f"Unknown plugin '{plugin_name}'."
        )

    wanted = function_name.lower()
    for spec in plugin.functions:
        if spec.name.lower() == wanted:
            return ResolvedCall(plugin=plugin, function=spec)

    return ResolutionFailure(
        ResolutionErrorKind.UNKNOWN_FUNCTION,
        f"Unknown function '{function_name}' for plugin '{plugin_name}'.",
    )
