"""
Core data models for toolwarden.

These are plain dataclasses with no external dependencies beyond the standard
library. They represent the domain concepts shared across the entire system.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from toolwarden.core.plugins import FunctionSpec
    from toolwarden.core.ports import PluginPort
    from toolwarden.core.registry import PluginRegistry


@dataclass
class PlannedCall:
    """A single call proposed by the planner. Arguments are untyped strings."""

    plugin_name: str
    function_name: str
    arguments: dict[str, str | None] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.plugin_name}.{self.function_name}"


@dataclass
class Plan:
    """An ordered batch of planned calls. Order drives the repetition and undo policies."""

    tool_calls: list[PlannedCall] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tool_calls)


def serialize_arguments(arguments: dict[str, str | None] | None) -> str:
    """Serialize a call's arguments for the audit trail."""
    return json.dumps(arguments or {}, ensure_ascii=False)


@dataclass
class CallResult:
    """Audit record for one proposed call, whether blocked, failed or executed."""

    plugin_name: str
    function_name: str
    arguments: str = ""
    result: str = ""
    success: bool = True
    error_message: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.plugin_name}.{self.function_name}"

    def to_summary(self) -> str:
        if self.success:
            return f"{self.full_name}: {self.result}"
        return f"{self.full_name}: Failed - {self.error_message}"

    @classmethod
    def blocked(cls, call: PlannedCall, reason: str) -> CallResult:
        return cls(
            plugin_name=call.plugin_name,
            function_name=call.function_name,
            arguments=serialize_arguments(call.arguments),
            success=False,
            error_message=reason,
        )


def format_actions_summary(results: Sequence[CallResult]) -> str:
    """Render the "actions taken" block handed to response generation."""
    if not results:
        return "None"
    return "\n".join(f"- {r.to_summary()}" for r in results)


@dataclass
class ToolCall:
    """A tool invocation requested by the LLM in autonomous mode."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class Message:
    """A single message in a conversation."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None  # set when role == "tool"
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ToolDefinition:
    """Definition of a tool that can be called by the LLM."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema object


@dataclass(frozen=True)
class ValidationContext:
    """Read-only input to the plan validator."""

    registry: PluginRegistry
    recent_messages: Sequence[Message] = ()


@dataclass
class ValidationOutcome:
    """Partition of a plan. len(approved) + len(blocked) == len(plan)."""

    approved: list[PlannedCall] = field(default_factory=list)
    blocked: list[CallResult] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedCall:
    """Ephemeral binding of a plugin instance to one of its functions."""

    plugin: PluginPort
    function: FunctionSpec


@dataclass
class RequestResult:
    """Outcome of one autonomous-mode model request."""

    success: bool
    content: str = ""
    tool_calls: list[CallResult] = field(default_factory=list)
    error_message: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @property
    def successful_tool_calls(self) -> list[CallResult]:
        return [tc for tc in self.tool_calls if tc.success]

    @property
    def failed_tool_calls(self) -> list[CallResult]:
        return [tc for tc in self.tool_calls if not tc.success]

    def format_actions_summary(self) -> str:
        return format_actions_summary(self.tool_calls)

    @classmethod
    def failure(
        cls, error_message: str, tool_calls: list[CallResult] | None = None
    ) -> RequestResult:
        return cls(success=False, error_message=error_message, tool_calls=tool_calls or [])

    @classmethod
    def with_content(cls, content: str) -> RequestResult:
        return cls(success=True, content=content)


class Level(Enum):
    """Priority, energy or interest level of a todo, shown to users as a colour."""

    BLUE = 0
    GREEN = 1
    YELLOW = 2
    RED = 3

    @property
    def emoji(self) -> str:
        return _LEVEL_EMOJI[self]

    @classmethod
    def parse(cls, value: str) -> Level:
        """Parse a colour name, alias, emoji or digit into a Level."""
        normalized = value.strip().lower()
        level = _LEVEL_ALIASES.get(normalized)
        if level is None:
            raise ValueError(
                f"Invalid level '{value}'. Use: blue/low (0), green/medium (1), "
                "yellow/high (2), red/urgent (3), or color emojis."
            )
        return level


_LEVEL_EMOJI = {
    Level.BLUE: "\U0001f535",
    Level.GREEN: "\U0001f7e2",
    Level.YELLOW: "\U0001f7e1",
    Level.RED: "\U0001f534",
}

_LEVEL_ALIASES: dict[str, Level] = {
    "blue": Level.BLUE,
    "low": Level.BLUE,
    "minimal": Level.BLUE,
    "0": Level.BLUE,
    "green": Level.GREEN,
    "medium": Level.GREEN,
    "normal": Level.GREEN,
    "1": Level.GREEN,
    "yellow": Level.YELLOW,
    "high": Level.YELLOW,
    "2": Level.YELLOW,
    "red": Level.RED,
    "urgent": Level.RED,
    "critical": Level.RED,
    "3": Level.RED,
    **{emoji: level for level, emoji in _LEVEL_EMOJI.items()},
}


@dataclass
class TodoItem:
    """A persistent task tracked for a person."""

    id: str
    description: str
    priority: Level = Level.GREEN
    energy: Level = Level.GREEN
    interest: Level = Level.GREEN
    reminder_at: datetime | None = None
    completed: bool = False
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Reminder:
    """A one-time reminder notification."""

    id: str
    message: str
    remind_at: datetime
    cancelled: bool = False


@dataclass
class PersonSettings:
    """Per-person preferences. None means "use the configured default"."""

    timezone: str | None = None
    daily_task_count: int | None = None
