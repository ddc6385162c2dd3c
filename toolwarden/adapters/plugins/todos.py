"""
ToDos plugin: persistent tasks with optional reminders and three levels.

Every todo carries a priority, an energy and an interest level. Each level can
be set on one todo or on many at once; the bulk setters take a comma-separated
list of ids, or empty/'all' for every active todo.

Domain failures (bad id, unknown todo, unparseable time) are reported as
returned text so the response step can explain them; only argument coercion
and store errors raise.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from loguru import logger

from toolwarden.core.executor import raise_if_cancelled
from toolwarden.core.fuzzy_time import parse_fuzzy_time
from toolwarden.core.models import Level
from toolwarden.core.plugins import FunctionTable, ParameterSpec
from toolwarden.core.ports import TodoStorePort

_TODO_ID = ParameterSpec("todoId", description="The todo ID (GUID)")
_TODO_IDS = ParameterSpec(
    "todoIds",
    description="Comma-separated list of todo IDs (GUIDs), or empty/'all' for all active todos",
)
_LEVEL_HINT = (
    "Accepts: 'blue'/'low' (0), 'green'/'medium' (1), 'yellow'/'high' (2), "
    "'red'/'urgent' (3), or color emojis."
)
_LEVEL_ATTRIBUTES = ("priority", "energy", "interest")


def _valid_id(todo_id: str) -> bool:
    try:
        uuid.UUID(todo_id.strip())
    except ValueError:
        return False
    return True


def parse_todo_ids(todo_ids: str) -> list[str] | None:
    """
    Split a comma-separated id list.

    Returns None for empty input or 'all', meaning every active todo.
    Entries that are not GUIDs are dropped.
    """
    if not todo_ids.strip() or todo_ids.strip().lower() == "all":
        return None
    return [part.strip() for part in todo_ids.split(",") if part.strip() and _valid_id(part)]


def _optional_level(attribute: str) -> ParameterSpec:
    return ParameterSpec(
        attribute,
        Level | None,
        default=None,
        description=f"Optional {attribute} level. {_LEVEL_HINT}",
    )


def _level(attribute: str) -> ParameterSpec:
    return ParameterSpec(
        attribute, Level, description=f"{attribute.capitalize()} level. {_LEVEL_HINT}"
    )


class TodosPlugin:
    """Create, update, complete and delete the user's todos."""

    name = "ToDos"

    def __init__(
        self, store: TodoStorePort, *, clock: Callable[[], datetime] | None = None
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))
        table = (
            FunctionTable()
            .add(
                "create_todo",
                self.create_todo,
                ParameterSpec("description", description="The todo description"),
                ParameterSpec(
                    "reminderDate",
                    str | None,
                    default=None,
                    description=(
                        "Optional reminder time, e.g. 'in 10 minutes', 'tomorrow', "
                        "or ISO 8601 (2025-12-31T10:00:00)."
                    ),
                ),
                *(_optional_level(attribute) for attribute in _LEVEL_ATTRIBUTES),
                ParameterSpec.cancellation(),
                description=(
                    "Creates a new todo with an optional reminder. Supports fuzzy times "
                    "like 'in 10 minutes', 'in 2 hours', 'tomorrow', or ISO 8601 format."
                ),
            )
            .add(
                "update_todo",
                self.update_todo,
                _TODO_ID,
                ParameterSpec("description", description="The new todo description"),
                description="Updates an existing todo's description",
            )
            .add(
                "complete_todo",
                self.complete_todo,
                _TODO_ID,
                description="Marks a todo as completed",
            )
            .add("delete_todo", self.delete_todo, _TODO_ID, description="Deletes a todo")
        )
        for attribute in _LEVEL_ATTRIBUTES:
            table.add(
                f"set_{attribute}",
                getattr(self, f"set_{attribute}"),
                _TODO_ID,
                _level(attribute),
                description=f"Sets the {attribute} level for a specific todo",
            )
        for attribute in _LEVEL_ATTRIBUTES:
            table.add(
                f"set_all_{attribute}",
                getattr(self, f"set_all_{attribute}"),
                _TODO_IDS,
                _level(attribute),
                ParameterSpec.cancellation(),
                description=(
                    f"Sets the {attribute} level for multiple todos at once. "
                    "If todoIds is empty or 'all', updates all active todos."
                ),
            )
        self.functions = table.add(
            "list_todos", self.list_todos, description="Lists the user's active todos"
        )

    async def create_todo(
        self,
        description: str,
        reminder_date: str | None,
        priority: Level | None,
        energy: Level | None = None,
        interest: Level | None = None,
        cancellation: asyncio.Event | None = None,
    ) -> str:
        reminder_at = None
        if reminder_date and reminder_date.strip():
            reminder_at = parse_fuzzy_time(reminder_date, self._clock())
            if reminder_at is None:
                return f"Failed to create todo: could not parse '{reminder_date}' as a time."

        raise_if_cancelled(cancellation)
        item = await self._store.add(
            description.strip(),
            priority=priority or Level.GREEN,
            energy=energy or Level.GREEN,
            interest=interest or Level.GREEN,
            reminder_at=reminder_at,
        )
        if reminder_at is not None:
            return (
                f"Successfully created todo '{item.description}' with a reminder set for "
                f"{reminder_at:%Y-%m-%d %H:%M:%S} UTC."
            )
        return f"Successfully created todo '{item.description}'."

    async def update_todo(self, todo_id: str, description: str) -> str:
        if not _valid_id(todo_id):
            return f"Failed to update todo: invalid todo ID '{todo_id}'."
        item = await self._store.get(todo_id.strip())
        if item is None:
            return "Failed to update todo: todo not found."
        item.description = description.strip()
        await self._store.save(item)
        return f"Successfully updated the todo to '{item.description}'."

    async def complete_todo(self, todo_id: str) -> str:
        if not _valid_id(todo_id):
            return f"Failed to complete todo: invalid todo ID '{todo_id}'."
        item = await self._store.get(todo_id.strip())
        if item is None:
            return "Failed to complete todo: todo not found."
        item.completed = True
        await self._store.save(item)
        return f"Successfully completed the todo '{item.description}'."

    async def delete_todo(self, todo_id: str) -> str:
        if not _valid_id(todo_id):
            return f"Failed to delete todo: invalid todo ID '{todo_id}'."
        if not await self._store.delete(todo_id.strip()):
            return "Failed to delete todo: todo not found."
        return "Successfully deleted the todo."

    async def _set_level(self, attribute: str, todo_id: str, level: Level) -> str:
        if not _valid_id(todo_id):
            return f"Failed to set {attribute}: invalid todo ID '{todo_id}'."
        item = await self._store.get(todo_id.strip())
        if item is None:
            return f"Failed to set {attribute}: todo not found."
        setattr(item, attribute, level)
        await self._store.save(item)
        return f"Successfully set {attribute} to {level.emoji}."

    async def set_priority(self, todo_id: str, priority: Level) -> str:
        return await self._set_level("priority", todo_id, priority)

    async def set_energy(self, todo_id: str, energy: Level) -> str:
        return await self._set_level("energy", todo_id, energy)

    async def set_interest(self, todo_id: str, interest: Level) -> str:
        return await self._set_level("interest", todo_id, interest)

    async def _set_all_levels(
        self,
        attribute: str,
        todo_ids: str,
        level: Level,
        cancellation: asyncio.Event | None,
    ) -> str:
        ids = parse_todo_ids(todo_ids)
        if ids is None:
            targets = [item.id for item in await self._store.list_active()]
        else:
            targets = ids

        updated = 0
        for todo_id in targets:
            raise_if_cancelled(cancellation)
            item = await self._store.get(todo_id)
            if item is None:
                logger.warning("todos: set_all_{} skipped unknown todo {}", attribute, todo_id)
                continue
            setattr(item, attribute, level)
            await self._store.save(item)
            updated += 1

        if ids is None:
            return f"Successfully set {attribute} to {level.emoji} for all {updated} active todos."
        return f"Successfully set {attribute} to {level.emoji} for {updated} todos."

    async def set_all_priority(
        self, todo_ids: str, priority: Level, cancellation: asyncio.Event | None = None
    ) -> str:
        return await self._set_all_levels("priority", todo_ids, priority, cancellation)

    async def set_all_energy(
        self, todo_ids: str, energy: Level, cancellation: asyncio.Event | None = None
    ) -> str:
        return await self._set_all_levels("energy", todo_ids, energy, cancellation)

    async def set_all_interest(
        self, todo_ids: str, interest: Level, cancellation: asyncio.Event | None = None
    ) -> str:
        return await self._set_all_levels("interest", todo_ids, interest, cancellation)

    async def list_todos(self) -> str:
        items = await self._store.list_active()
        if not items:
            return "You have no active todos."
        lines = []
        for item in items:
            due = f"{item.reminder_at:%Y-%m-%d}" if item.reminder_at else "No due date"
            levels = f"{item.priority.emoji}{item.energy.emoji}{item.interest.emoji}"
            lines.append(f"{levels} [{item.id}] {item.description} (Due: {due})")
        lines.append("Levels: priority, energy, interest")
        return "\n".join(lines)
