from __future__ import annotations

import asyncio

import pytest

from toolwarden.core.executor import CallCancelledError, execute_all, invoke, raise_if_cancelled
from toolwarden.core.models import PlannedCall
from toolwarden.core.plugins import FunctionTable, ParameterSpec
from toolwarden.core.registry import PluginRegistry
from toolwarden.core.resolver import resolve


class CounterPlugin:
    """Records every call so tests can assert on execution order."""

    name = "Counter"

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.functions = (
            FunctionTable()
            .add("add", self.add, ParameterSpec("amount", int))
            .add("boom", self.boom)
            .add("nothing", self.nothing)
            .add("sync_value", self.sync_value)
            .add("number", self.number)
            .add("stop", self.stop, ParameterSpec.cancellation())
            .add("cancel_others", self.cancel_others, ParameterSpec.cancellation())
        )
        self.total = 0

    async def add(self, amount: int) -> str:
        self.calls.append("add")
        self.total += amount
        return f"total={self.total}"

    async def boom(self) -> str:
        self.calls.append("boom")
        raise RuntimeError("handler exploded")

    async def nothing(self) -> None:
        self.calls.append("nothing")

    def sync_value(self) -> str:
        self.calls.append("sync_value")
        return "sync"

    async def number(self) -> int:
        self.calls.append("number")
        return 42

    async def stop(self, cancellation: asyncio.Event | None) -> str:
        self.calls.append("stop")
        raise_if_cancelled(cancellation)
        return "not cancelled"

    async def cancel_others(self, cancellation: asyncio.Event | None) -> str:
        self.calls.append("cancel_others")
        assert cancellation is not None
        cancellation.set()
        return "cancelling"


@pytest.fixture
def plugin() -> CounterPlugin:
    return CounterPlugin()


@pytest.fixture
def registry(plugin) -> PluginRegistry:
    return PluginRegistry([plugin])


async def test_successful_call_records_result(registry):
    results = await execute_all([PlannedCall("Counter", "add", {"amount": "3"})], registry)
    assert len(results) == 1
    assert results[0].success is True
    assert results[0].result == "total=3"
    assert results[0].error_message is None
    assert results[0].arguments == '{"amount": "3"}'


async def test_calls_run_in_order(registry, plugin):
    calls = [
        PlannedCall("Counter", "add", {"amount": "1"}),
        PlannedCall("Counter", "nothing"),
        PlannedCall("Counter", "add", {"amount": "2"}),
    ]
    results = await execute_all(calls, registry)
    assert plugin.calls == ["add", "nothing", "add"]
    assert [r.result for r in results] == ["total=1", "", "total=3"]


async def test_handler_exception_is_recorded_and_batch_continues(registry, plugin):
    calls = [PlannedCall("Counter", "boom"), PlannedCall("Counter", "add", {"amount": "1"})]
    results = await execute_all(calls, registry)
    assert results[0].success is False
    assert results[0].error_message == "handler exploded"
    assert results[0].result == ""
    assert results[1].success is True
    assert plugin.calls == ["boom", "add"]


async def test_unresolvable_call_yields_single_failure(registry):
    results = await execute_all([PlannedCall("Counter", "missing")], registry)
    assert len(results) == 1
    assert results[0].success is False
    assert results[0].error_message == "Unknown function 'missing' for plugin 'Counter'."


async def test_coercion_error_is_recorded(registry, plugin):
    results = await execute_all([PlannedCall("Counter", "add", {"amount": "lots"})], registry)
    assert results[0].success is False
    assert "Cannot convert 'lots' to int" in results[0].error_message
    assert plugin.calls == []


async def test_sync_and_non_string_results(registry):
    calls = [PlannedCall("Counter", "sync_value"), PlannedCall("Counter", "number")]
    results = await execute_all(calls, registry)
    assert [r.result for r in results] == ["sync", "42"]


async def test_empty_batch(registry):
    assert await execute_all([], registry) == []


async def test_preset_cancellation_runs_nothing(registry, plugin):
    event = asyncio.Event()
    event.set()
    results = await execute_all([PlannedCall("Counter", "add", {"amount": "1"})], registry, event)
    assert results == []
    assert plugin.calls == []


async def test_cancellation_between_calls_stops_batch(registry, plugin):
    event = asyncio.Event()
    calls = [
        PlannedCall("Counter", "add", {"amount": "1"}),
        PlannedCall("Counter", "cancel_others"),
        PlannedCall("Counter", "add", {"amount": "2"}),
    ]
    results = await execute_all(calls, registry, event)
    assert [r.function_name for r in results] == ["add", "cancel_others"]
    assert all(r.success for r in results)
    assert plugin.total == 1


async def test_event_set_by_handler_skips_remaining_calls(registry, plugin):
    event = asyncio.Event()
    calls = [PlannedCall("Counter", "cancel_others"), PlannedCall("Counter", "stop")]
    results = await execute_all(calls, registry, event)
    assert len(results) == 1
    assert plugin.calls == ["cancel_others"]


async def test_call_cancelled_error_records_failure_and_stops():
    plugin = CounterPlugin()
    registry = PluginRegistry([plugin])
    event = asyncio.Event()

    class Trigger:
        name = "Trigger"

        def __init__(self) -> None:
            self.functions = FunctionTable().add("fire", self.fire)

        async def fire(self) -> str:
            raise CallCancelledError("Cancelled.")

    registry.register(Trigger())
    calls = [
        PlannedCall("Counter", "add", {"amount": "1"}),
        PlannedCall("Trigger", "fire"),
        PlannedCall("Counter", "add", {"amount": "2"}),
    ]
    results = await execute_all(calls, registry, event)
    assert [r.success for r in results] == [True, False]
    assert results[1].error_message == "Cancelled."
    assert plugin.total == 1


async def test_implicit_cancellation_is_passed_to_handler(registry):
    resolved = resolve(registry, "Counter", "stop")
    event = asyncio.Event()
    assert await invoke(resolved, {}, event) == "not cancelled"
    event.set()
    with pytest.raises(CallCancelledError):
        await invoke(resolved, {}, event)


async def test_task_cancellation_propagates():
    class Sleeper:
        name = "Sleeper"

        def __init__(self) -> None:
            self.functions = FunctionTable().add("sleep", self.sleep)

        async def sleep(self) -> str:
            await asyncio.sleep(10)
            return "woke"

    registry = PluginRegistry([Sleeper()])
    task = asyncio.create_task(execute_all([PlannedCall("Sleeper", "sleep")], registry))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
