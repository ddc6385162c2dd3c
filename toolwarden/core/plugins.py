"""
Explicit function registration for plugins.

A plugin exposes its callable functions as a table of FunctionSpec entries,
built when the plugin is constructed. Each entry carries the declared name,
the parameter schema and the handler that runs it, so functions can be
resolved by string name at request time without runtime introspection.
"""

from __future__ import annotations

import asyncio
import types
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union, get_args, get_origin

from toolwarden.core.models import ToolDefinition


class _Required:
    def __repr__(self) -> str:
        return "REQUIRED"


REQUIRED: Any = _Required()

Handler = Callable[..., "str | None | Awaitable[str | None]"]


def unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Return (inner type, is_optional) for ``T | None`` / ``Optional[T]``."""
    if get_origin(annotation) in (Union, types.UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(args) != len(get_args(annotation)):
            return args[0], True
    return annotation, False


@dataclass(frozen=True)
class ParameterSpec:
    """
    Declared parameter of a plugin function.

    Args:
        name: The wire name the planner uses in its argument map.
        type: str, int, float, bool, an Enum subclass, or any of those ``| None``.
        default: Value used when the argument is absent or blank; REQUIRED if none.
        description: Human-readable hint exported in the tool schema.
        implicit: System-supplied parameter (the cancellation event), never
            read from the argument map.
    """

    name: str
    type: Any = str
    default: Any = REQUIRED
    description: str = ""
    implicit: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not REQUIRED

    @property
    def is_required(self) -> bool:
        return not self.implicit and not self.has_default

    @classmethod
    def cancellation(cls, name: str = "cancellation") -> ParameterSpec:
        """The implicit cancellation parameter, filled with the live asyncio.Event."""
        return cls(name=name, type=asyncio.Event, default=None, implicit=True)


@dataclass(frozen=True)
class FunctionSpec:
    """A named, typed function exposed by a plugin."""

    name: str
    handler: Handler
    parameters: tuple[ParameterSpec, ...] = ()
    description: str = ""

    @property
    def required_parameters(self) -> list[ParameterSpec]:
        return [p for p in self.parameters if p.is_required]

    def json_schema(self) -> dict[str, Any]:
        """Build the JSON Schema object describing this function's arguments."""
        properties: dict[str, Any] = {}
        for param in self.parameters:
            if param.implicit:
                continue
            prop = _json_type(param.type)
            if param.description:
                prop["description"] = param.description
            properties[param.name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": [p.name for p in self.required_parameters],
        }


class FunctionTable:
    """Ordered collection of a plugin's FunctionSpecs. Raises ValueError on duplicates."""

    def __init__(self) -> None:
        self._functions: dict[str, FunctionSpec] = {}

    def add(
        self,
        name: str,
        handler: Handler,
        *parameters: ParameterSpec,
        description: str = "",
    ) -> FunctionTable:
        key = name.lower()
        if key in self._functions:
            raise ValueError(f"Function '{name}' is already registered")
        self._functions[key] = FunctionSpec(
            name=name, handler=handler, parameters=parameters, description=description
        )
        return self

    def __iter__(self) -> Iterator[FunctionSpec]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)


def tool_name(plugin_name: str, function_name: str) -> str:
    """Name of a plugin function as exported to the model."""
    return f"{plugin_name}-{function_name}"


def build_tool_definition(plugin_name: str, spec: FunctionSpec) -> ToolDefinition:
    return ToolDefinition(
        name=tool_name(plugin_name, spec.name),
        description=spec.description,
        parameters=spec.json_schema(),
    )


_JSON_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}


def _json_type(annotation: Any) -> dict[str, Any]:
    inner, _ = unwrap_optional(annotation)
    if isinstance(inner, type) and issubclass(inner, Enum):
        return {"type": "string", "enum": [member.name.lower() for member in inner]}
    return {"type": _JSON_TYPES.get(inner, "string")}
