"""Time plugin: current date and time in UTC."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from toolwarden.core.plugins import FunctionTable


class TimePlugin:
    name = "Time"

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self.functions = (
            FunctionTable()
            .add("get_datetime", self.get_datetime, description="Gets the current date and time")
            .add("get_time", self.get_time, description="Gets the current time")
        )

    def get_datetime(self) -> str:
        return self._clock().strftime("%Y-%m-%dT%H:%M:%S")

    def get_time(self) -> str:
        return self._clock().strftime("%H:%M:%S")
