from __future__ import annotations

import pytest

from toolwarden.adapters.persistence.memory import InMemoryPersonStore
from toolwarden.adapters.plugins.person import PersonPlugin, resolve_timezone
from toolwarden.core.models import PersonSettings


@pytest.fixture
def store() -> InMemoryPersonStore:
    return InMemoryPersonStore()


@pytest.fixture
def plugin(store) -> PersonPlugin:
    return PersonPlugin(store, default_timezone="UTC", default_daily_task_count=5)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("PST", "America/Los_Angeles"),
        ("est", "America/New_York"),
        ("Pacific", "America/Los_Angeles"),
        ("Europe/Berlin", "Europe/Berlin"),
        (" UTC ", "UTC"),
    ],
)
def test_resolve_timezone(value, expected):
    assert resolve_timezone(value) == expected


@pytest.mark.parametrize("value", ["", "Mars/Olympus_Mons", "XYZ"])
def test_resolve_timezone_rejects_unknown(value):
    assert resolve_timezone(value) is None


async def test_timezone_round_trip(plugin, store):
    assert await plugin.get_timezone() == "You are currently using the default timezone: UTC."
    assert await plugin.set_timezone("CST") == "Successfully set your timezone to America/Chicago."
    assert (await store.load()).timezone == "America/Chicago"
    assert await plugin.get_timezone() == "Your timezone is set to: America/Chicago."


async def test_set_unknown_timezone(plugin, store):
    result = await plugin.set_timezone("Nowhere/Special")
    assert result == "Failed to set timezone: unknown timezone 'Nowhere/Special'."
    assert (await store.load()).timezone is None


async def test_daily_task_count(plugin, store):
    assert "default daily task count: 5" in await plugin.get_daily_task_count()
    assert await plugin.set_daily_task_count(8) == (
        "Successfully set your daily task count to 8 tasks."
    )
    assert await plugin.get_daily_task_count() == (
        "Your daily task count is set to: 8 tasks per day."
    )


@pytest.mark.parametrize("count", [0, 21, -1])
async def test_daily_task_count_out_of_range(plugin, store, count):
    result = await plugin.set_daily_task_count(count)
    assert result.startswith("Failed to set daily task count")
    assert (await store.load()).daily_task_count is None


async def test_existing_settings_are_kept():
    store = InMemoryPersonStore(PersonSettings(timezone="Asia/Tokyo", daily_task_count=3))
    plugin = PersonPlugin(store)
    await plugin.set_daily_task_count(4)
    settings = await store.load()
    assert settings.timezone == "Asia/Tokyo"
    assert settings.daily_task_count == 4
