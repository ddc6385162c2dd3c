"""
Port interfaces for toolwarden.

These are Python Protocol classes defining the contracts that adapters must satisfy.
The core domain imports ONLY from this file (and models.py) for any external dependency.

Adapters implement these protocols without inheriting from them (structural subtyping).
mypy verifies conformance statically.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from datetime import datetime
from typing import Any, Protocol

from toolwarden.core.models import (
    Level,
    Message,
    PersonSettings,
    Reminder,
    TodoItem,
    ToolDefinition,
)
from toolwarden.core.plugins import FunctionSpec


class PluginPort(Protocol):
    """
    Interface for capability providers.

    A plugin has a name (matched case-insensitively by the registry) and a
    table of functions built at construction time.
    """

    name: str
    functions: Iterable[FunctionSpec]


class LLMPort(Protocol):
    """
    Interface for language model communication in autonomous mode.

    Responses are streamed as text chunks; tool calls are accumulated and
    returned as a structured event.
    """

    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        *,
        stream: bool = True,
    ) -> AsyncIterator[str | list[Any]]:
        """
        Send messages to the LLM and receive a response stream.

        Yields either:
        - str: a text chunk
        - list[ToolCall]: a complete set of tool calls (end of response)

        Args:
            messages: The full conversation history including system prompt.
            tools: Available tool definitions in OpenAI format.
            stream: Whether to stream the response (default True).
        """
        ...


class TodoStorePort(Protocol):
    """Persistence for a single person's todos."""

    async def add(
        self,
        description: str,
        *,
        priority: Level,
        reminder_at: datetime | None,
        energy: Level = Level.GREEN,
        interest: Level = Level.GREEN,
    ) -> TodoItem: ...

    async def get(self, todo_id: str) -> TodoItem | None: ...

    async def list_active(self) -> list[TodoItem]: ...

    async def save(self, item: TodoItem) -> None: ...

    async def delete(self, todo_id: str) -> bool: ...


class ReminderStorePort(Protocol):
    """Persistence for one-time reminders."""

    async def add(self, message: str, remind_at: datetime) -> Reminder: ...

    async def cancel(self, reminder_id: str) -> bool: ...


class PersonStorePort(Protocol):
    """Persistence for per-person preferences."""

    async def load(self) -> PersonSettings: ...

    async def save(self, settings: PersonSettings) -> None: ...
