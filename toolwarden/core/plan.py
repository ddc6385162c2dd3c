"""
Parsing of the plan document emitted by the planning model.

Accepted shape (unknown fields are ignored, keys match case-insensitively)::

    {"toolCalls": [{"pluginName": "ToDos", "functionName": "create_todo",
                    "arguments": {"description": "Buy milk"}}]}

The snake_case spelling (tool_calls, plugin_name, function_name) is accepted
as well. A missing toolCalls array, a JSON null document, or blank content is
an empty plan.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from toolwarden.core.models import Plan, PlannedCall


class PlanParseError(ValueError):
    """Raised when plan content is not a valid plan document."""


def _fold_keys(data: Any, aliases: dict[str, str]) -> Any:
    if not isinstance(data, dict):
        return data
    folded: dict[str, Any] = {}
    for key, value in data.items():
        normalized = key.replace("_", "").lower() if isinstance(key, str) else key
        folded[aliases.get(normalized, key)] = value
    return folded


class _PlannedCallDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    plugin_name: str = ""
    function_name: str = ""
    arguments: dict[str, str | None] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        return _fold_keys(
            data,
            {
                "pluginname": "plugin_name",
                "functionname": "function_name",
                "arguments": "arguments",
            },
        )

    @field_validator("plugin_name", "function_name", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("arguments", mode="before")
    @classmethod
    def _stringify_arguments(cls, value: Any) -> Any:
        """Models often emit numbers and booleans; at this layer everything is a string."""
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        stringified: dict[str, str | None] = {}
        for key, item in value.items():
            if item is None or isinstance(item, str):
                stringified[str(key)] = item
            elif isinstance(item, bool):
                stringified[str(key)] = "true" if item else "false"
            elif isinstance(item, int | float):
                stringified[str(key)] = str(item)
            else:
                stringified[str(key)] = json.dumps(item)
        return stringified

    def to_model(self) -> PlannedCall:
        return PlannedCall(
            plugin_name=self.plugin_name,
            function_name=self.function_name,
            arguments=dict(self.arguments),
        )


class _PlanDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tool_calls: list[_PlannedCallDocument] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if data is None:
            return {}
        return _fold_keys(data, {"toolcalls": "tool_calls"})

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value


def parse_plan(content: str | None) -> Plan:
    """
    Parse a plan document.

    Args:
        content: Raw JSON text from the planning model.

    Returns:
        The parsed Plan; empty for blank content or a JSON null.

    Raises:
        PlanParseError: If the content is not valid JSON or not a plan object.
    """
    if content is None or not content.strip():
        return Plan()
    try:
        document = _PlanDocument.model_validate_json(content)
    except ValidationError as e:
        raise PlanParseError(f"Invalid tool plan JSON: {e}") from e
    return Plan(tool_calls=[call.to_model() for call in document.tool_calls])
