"""Reminders plugin: ephemeral one-time notifications that are not tracked as todos."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from toolwarden.core.executor import raise_if_cancelled
from toolwarden.core.fuzzy_time import parse_fuzzy_time
from toolwarden.core.plugins import FunctionTable, ParameterSpec
from toolwarden.core.ports import ReminderStorePort


class RemindersPlugin:
    """Create and cancel one-time reminders."""

    name = "Reminders"

    def __init__(
        self, store: ReminderStorePort, *, clock: Callable[[], datetime] | None = None
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))
        self.functions = (
            FunctionTable()
            .add(
                "create_reminder",
                self.create_reminder,
                ParameterSpec(
                    "message",
                    description="What to remind the user about (e.g., 'take a break')",
                ),
                ParameterSpec(
                    "reminderTime",
                    description=(
                        "When to send the reminder: 'in 10 minutes', 'in 2 hours', "
                        "'tomorrow', 'next week', or ISO 8601."
                    ),
                ),
                ParameterSpec.cancellation(),
                description=(
                    "Creates a one-time reminder notification for things that don't need "
                    "to be tracked as tasks. For persistent tasks use ToDos.create_todo."
                ),
            )
            .add(
                "cancel_reminder",
                self.cancel_reminder,
                ParameterSpec("reminderId", description="The reminder ID"),
                description="Cancels a pending reminder",
            )
        )

    async def create_reminder(
        self,
        message: str,
        reminder_time: str,
        cancellation: asyncio.Event | None = None,
    ) -> str:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        remind_at = parse_fuzzy_time(reminder_time, now)
        if remind_at is None:
            return f"Failed to create reminder: could not parse '{reminder_time}' as a time."
        if remind_at <= now:
            return "Failed to create reminder: the reminder time is in the past."

        raise_if_cancelled(cancellation)
        reminder = await self._store.add(message.strip(), remind_at)
        return (
            f"Successfully created reminder '{reminder.message}' for "
            f"{remind_at:%Y-%m-%d %H:%M:%S} UTC."
        )

    async def cancel_reminder(self, reminder_id: str) -> str:
        if not await self._store.cancel(reminder_id.strip()):
            return "Failed to cancel reminder: reminder not found."
        return "Successfully cancelled the reminder."
