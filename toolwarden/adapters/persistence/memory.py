"""
In-memory persistence for the built-in plugins.

These stores back the CLI and the test suite. They satisfy the store ports in
toolwarden.core.ports and keep nothing beyond the life of the process.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime

from toolwarden.core.models import Level, PersonSettings, Reminder, TodoItem


class InMemoryTodoStore:
    """Todos for one person, keyed by id in insertion order."""

    def __init__(self) -> None:
        self._items: dict[str, TodoItem] = {}

    async def add(
        self,
        description: str,
        *,
        priority: Level,
        reminder_at: datetime | None,
        energy: Level = Level.GREEN,
        interest: Level = Level.GREEN,
    ) -> TodoItem:
        item = TodoItem(
            id=str(uuid.uuid4()),
            description=description,
            priority=priority,
            energy=energy,
            interest=interest,
            reminder_at=reminder_at,
        )
        self._items[item.id] = item
        return replace(item)

    async def get(self, todo_id: str) -> TodoItem | None:
        item = self._items.get(todo_id)
        return replace(item) if item is not None else None

    async def list_active(self) -> list[TodoItem]:
        return [replace(item) for item in self._items.values() if not item.completed]

    async def save(self, item: TodoItem) -> None:
        if item.id not in self._items:
            raise KeyError(item.id)
        self._items[item.id] = replace(item)

    async def delete(self, todo_id: str) -> bool:
        return self._items.pop(todo_id, None) is not None


class InMemoryReminderStore:
    """One-time reminders."""

    def __init__(self) -> None:
        self._reminders: dict[str, Reminder] = {}

    async def add(self, message: str, remind_at: datetime) -> Reminder:
        reminder = Reminder(id=str(uuid.uuid4()), message=message, remind_at=remind_at)
        self._reminders[reminder.id] = reminder
        return replace(reminder)

    async def cancel(self, reminder_id: str) -> bool:
        reminder = self._reminders.get(reminder_id)
        if reminder is None or reminder.cancelled:
            return False
        reminder.cancelled = True
        return True

    @property
    def pending(self) -> list[Reminder]:
        return [replace(r) for r in self._reminders.values() if not r.cancelled]


class InMemoryPersonStore:
    """Preferences of a single person."""

    def __init__(self, settings: PersonSettings | None = None) -> None:
        self._settings = settings or PersonSettings()

    async def load(self) -> PersonSettings:
        return replace(self._settings)

    async def save(self, settings: PersonSettings) -> None:
        self._settings = replace(settings)
