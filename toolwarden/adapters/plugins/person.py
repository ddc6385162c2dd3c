"""Person plugin: the user's timezone and daily task count preferences."""

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from toolwarden.core.plugins import FunctionTable, ParameterSpec
from toolwarden.core.ports import PersonStorePort

MIN_DAILY_TASK_COUNT = 1
MAX_DAILY_TASK_COUNT = 20

# US zones win for ambiguous abbreviations.
_TIMEZONE_ABBREVIATIONS: dict[str, str] = {
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "EASTERN": "America/New_York",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "CENTRAL": "America/Chicago",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "MOUNTAIN": "America/Denver",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
    "PACIFIC": "America/Los_Angeles",
    "GMT": "Europe/London",
    "BST": "Europe/London",
    "CET": "Europe/Paris",
    "JST": "Asia/Tokyo",
    "AEST": "Australia/Sydney",
    "UTC": "UTC",
}


def resolve_timezone(value: str) -> str | None:
    """Map an IANA name or common abbreviation to a valid IANA name."""
    candidate = value.strip()
    if not candidate:
        return None
    candidate = _TIMEZONE_ABBREVIATIONS.get(candidate.upper(), candidate)
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    return candidate


class PersonPlugin:
    """Read and change per-person settings."""

    name = "Person"

    def __init__(
        self,
        store: PersonStorePort,
        *,
        default_timezone: str = "UTC",
        default_daily_task_count: int = 5,
    ) -> None:
        self._store = store
        self._default_timezone = default_timezone
        self._default_daily_task_count = default_daily_task_count
        self.functions = (
            FunctionTable()
            .add(
                "set_timezone",
                self.set_timezone,
                ParameterSpec(
                    "timezone",
                    description=(
                        "The timezone ID or common abbreviation "
                        "(e.g., 'America/Chicago', 'EST', 'CST', 'Pacific')"
                    ),
                ),
                description=(
                    "Sets the user's timezone for interpreting reminder times. Accepts IANA "
                    "timezone IDs or common abbreviations (EST, CST, MST, PST, GMT, BST, CET, "
                    "JST, AEST)."
                ),
            )
            .add(
                "get_timezone",
                self.get_timezone,
                description="Gets the user's current timezone setting",
            )
            .add(
                "set_daily_task_count",
                self.set_daily_task_count,
                ParameterSpec("count", int, description="The number of tasks per day (1-20)"),
                description="Sets how many tasks are suggested in daily plans (1-20).",
            )
            .add(
                "get_daily_task_count",
                self.get_daily_task_count,
                description="Gets the current daily task count setting",
            )
        )

    async def set_timezone(self, timezone: str) -> str:
        resolved = resolve_timezone(timezone)
        if resolved is None:
            return f"Failed to set timezone: unknown timezone '{timezone}'."
        settings = await self._store.load()
        settings.timezone = resolved
        await self._store.save(settings)
        return f"Successfully set your timezone to {resolved}."

    async def get_timezone(self) -> str:
        settings = await self._store.load()
        if settings.timezone is None:
            return f"You are currently using the default timezone: {self._default_timezone}."
        return f"Your timezone is set to: {settings.timezone}."

    async def set_daily_task_count(self, count: int) -> str:
        if not MIN_DAILY_TASK_COUNT <= count <= MAX_DAILY_TASK_COUNT:
            return (
                "Failed to set daily task count: must be between "
                f"{MIN_DAILY_TASK_COUNT} and {MAX_DAILY_TASK_COUNT}."
            )
        settings = await self._store.load()
        settings.daily_task_count = count
        await self._store.save(settings)
        return f"Successfully set your daily task count to {count} tasks."

    async def get_daily_task_count(self) -> str:
        settings = await self._store.load()
        if settings.daily_task_count is None:
            return (
                "You are currently using the default daily task count: "
                f"{self._default_daily_task_count} tasks per day."
            )
        return f"Your daily task count is set to: {settings.daily_task_count} tasks per day."
