"""Relative time expressions ("in 10 minutes", "tomorrow") for reminder times."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

_IN_DURATION = re.compile(
    r"^\s*in\s+(?P<number>\d+)\s*(?P<unit>minutes?|mins?|m|hours?|hrs?|h|days?|d|weeks?|w)\s*$",
    re.IGNORECASE,
)
_TOMORROW = re.compile(r"^\s*tomorrow\s*$", re.IGNORECASE)
_NEXT_WEEK = re.compile(r"^\s*next\s+week\s*$", re.IGNORECASE)

_UNITS: dict[str, timedelta] = {
    "m": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "mins": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "minutes": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "hrs": timedelta(hours=1),
    "hour": timedelta(hours=1),
    "hours": timedelta(hours=1),
    "d": timedelta(days=1),
    "day": timedelta(days=1),
    "days": timedelta(days=1),
    "w": timedelta(weeks=1),
    "week": timedelta(weeks=1),
    "weeks": timedelta(weeks=1),
}


def parse_fuzzy_time(text: str, now: datetime | None = None) -> datetime | None:
    """
    Parse a relative or ISO 8601 time expression into an aware UTC datetime.

    Supports "in N minutes|hours|days|weeks" (with abbreviations m, min, h, hr,
    d, w), "tomorrow" and "next week". Anything else is tried as ISO 8601;
    naive values are taken as UTC.

    Args:
        text: The expression.
        now: Reference time; defaults to the current UTC time.

    Returns:
        The parsed time, or None when the text is not understood.
    """
    if not text or not text.strip():
        return None
    reference = now or datetime.now(UTC)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=UTC)

    match = _IN_DURATION.match(text)
    if match:
        number = int(match.group("number"))
        if number > 0:
            return reference + _UNITS[match.group("unit").lower()] * number

    if _TOMORROW.match(text):
        return reference + timedelta(days=1)
    if _NEXT_WEEK.match(text):
        return reference + timedelta(days=7)

    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
