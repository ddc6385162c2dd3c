"""
String-to-native argument conversion.

Planned calls carry every argument as a string. Before a handler runs, each
argument is converted to its parameter's declared type through a small fixed
table (str, int, float, bool, Enum, and ``T | None`` of those). Absent or
blank values fall back to the parameter's default, or to the type's zero value
when the parameter has none. Anything else is a CoercionError.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from toolwarden.core.plugins import ParameterSpec, unwrap_optional

_TRUE_VALUES = frozenset({"true", "1", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "n", "off"})


class CoercionError(ValueError):
    """Raised when an argument string cannot be converted to its declared type."""


def _to_int(raw: str) -> int:
    return int(raw.strip())


def _to_float(raw: str) -> float:
    return float(raw.strip())


def _to_bool(raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(raw)


_CONVERTERS: dict[type, Callable[[str], Any]] = {
    int: _to_int,
    float: _to_float,
    bool: _to_bool,
}

_ZERO_VALUES: dict[type, Any] = {
    int: 0,
    float: 0.0,
    bool: False,
}


def _to_enum(raw: str, enum_type: type[Enum]) -> Enum:
    parse = getattr(enum_type, "parse", None)
    if callable(parse):
        return parse(raw)  # type: ignore[no-any-return]
    wanted = raw.strip()
    for member in enum_type:
        if member.name.lower() == wanted.lower() or str(member.value) == wanted:
            return member
    raise ValueError(raw)


def zero_value(annotation: Any) -> Any:
    """The value a parameter gets when absent and it declares no default."""
    inner, optional = unwrap_optional(annotation)
    if optional:
        return None
    if isinstance(inner, type) and issubclass(inner, Enum):
        return next(iter(inner))
    return _ZERO_VALUES.get(inner)


def coerce_value(raw: str | None, param: ParameterSpec) -> Any:
    """
    Convert one raw argument to the parameter's declared type.

    Raises:
        CoercionError: If the value cannot be converted or the type is unsupported.
    """
    inner, _ = unwrap_optional(param.type)
    if inner is str or inner is Any:
        if raw is None:
            return param.default if param.has_default else None
        return raw

    if raw is None or not raw.strip():
        return param.default if param.has_default else zero_value(param.type)

    try:
        if isinstance(inner, type) and issubclass(inner, Enum):
            return _to_enum(raw, inner)
        converter = _CONVERTERS.get(inner)
        if converter is None:
            raise CoercionError(f"Unsupported type {inner!r} for parameter '{param.name}'")
        return converter(raw)
    except CoercionError:
        raise
    except ValueError as exc:
        type_name = getattr(inner, "__name__", repr(inner))
        raise CoercionError(
            f"Cannot convert '{raw}' to {type_name} for parameter '{param.name}'"
        ) from exc


def lookup_argument(arguments: Mapping[str, str | None], name: str) -> tuple[bool, str | None]:
    """Case-insensitive argument lookup. Returns (present, value)."""
    if name in arguments:
        return True, arguments[name]
    wanted = name.lower()
    for key, value in arguments.items():
        if key.lower() == wanted:
            return True, value
    return False, None


def bind_arguments(
    parameters: tuple[ParameterSpec, ...],
    arguments: Mapping[str, str | None],
    cancellation: Any = None,
) -> list[Any]:
    """
    Build the positional argument list for a handler.

    Implicit parameters receive the cancellation event. Absent arguments take
    the parameter's default, or the type's zero value.

    Raises:
        CoercionError: If any present argument cannot be converted.
    """
    values: list[Any] = []
    for param in parameters:
        if param.implicit:
            values.append(cancellation)
            continue
        present, raw = lookup_argument(arguments, param.name)
        if not present:
            values.append(param.default if param.has_default else zero_value(param.type))
            continue
        values.append(coerce_value(raw, param))
    return values
