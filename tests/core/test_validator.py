"""
Tests for plan validation against the built-in plugin set.

Plugins run over in-memory stores; validation never executes anything, so the
stores only need to exist.
"""

from __future__ import annotations

import pytest

from toolwarden.adapters.persistence.memory import (
    InMemoryPersonStore,
    InMemoryReminderStore,
    InMemoryTodoStore,
)
from toolwarden.adapters.plugins.clock import TimePlugin
from toolwarden.adapters.plugins.person import PersonPlugin
from toolwarden.adapters.plugins.reminders import RemindersPlugin
from toolwarden.adapters.plugins.todos import TodosPlugin
from toolwarden.config.schema import GovernanceConfig
from toolwarden.core.models import Message, Plan, PlannedCall, ValidationContext
from toolwarden.core.policies import (
    LIMIT_REACHED_MESSAGE,
    REPEATED_CALL_MESSAGE,
    TIMEZONE_CONTEXT_MESSAGE,
)
from toolwarden.core.registry import PluginRegistry
from toolwarden.core.resolver import resolve
from toolwarden.core.validator import (
    missing_required_arguments,
    normalize_arguments,
    validate_plan,
)

TODO_ID = "2b1d6f64-1f4e-4a43-9a55-0c5b8f3bcf31"


@pytest.fixture
def registry() -> PluginRegistry:
    return PluginRegistry(
        [
            TodosPlugin(InMemoryTodoStore()),
            RemindersPlugin(InMemoryReminderStore()),
            PersonPlugin(InMemoryPersonStore()),
            TimePlugin(),
        ]
    )


def _context(registry: PluginRegistry, *user_messages: str) -> ValidationContext:
    return ValidationContext(
        registry=registry,
        recent_messages=[Message(role="user", content=text) for text in user_messages],
    )


def _set_timezone(value: str = "PST") -> PlannedCall:
    return PlannedCall("Person", "set_timezone", {"timezone": value})


def _assert_partition(plan: Plan, outcome) -> None:
    assert len(outcome.approved) + len(outcome.blocked) == len(plan)


def test_empty_plan(registry):
    outcome = validate_plan(Plan(), _context(registry))
    assert outcome.approved == []
    assert outcome.blocked == []


def test_set_timezone_blocked_without_timezone_context(registry):
    plan = Plan([_set_timezone()])
    outcome = validate_plan(plan, _context(registry, "PST"))
    assert outcome.approved == []
    assert len(outcome.blocked) == 1
    assert outcome.blocked[0].error_message == TIMEZONE_CONTEXT_MESSAGE
    assert outcome.blocked[0].success is False


@pytest.mark.parametrize(
    "message",
    ["What timezone are you in?", "Please update my time zone", "My tz is PST"],
)
def test_set_timezone_allowed_with_timezone_context(registry, message):
    plan = Plan([_set_timezone()])
    outcome = validate_plan(plan, _context(registry, message))
    assert len(outcome.approved) == 1
    assert outcome.blocked == []


@pytest.mark.parametrize(
    "message",
    [
        Message(role="system", content="You may call Person.set_timezone to change a timezone."),
        Message(role="tool", content="Your timezone is set to: UTC."),
    ],
)
def test_set_timezone_not_unblocked_by_system_or_tool_messages(registry, message):
    context = ValidationContext(
        registry=registry,
        recent_messages=[message, Message(role="user", content="remind me to buy milk")],
    )
    outcome = validate_plan(Plan([_set_timezone("EST")]), context)
    assert outcome.approved == []
    assert outcome.blocked[0].error_message == TIMEZONE_CONTEXT_MESSAGE


def test_missing_required_arguments(registry):
    plan = Plan([PlannedCall("ToDos", "create_todo", {"priority": "high"})])
    outcome = validate_plan(plan, _context(registry))
    assert outcome.approved == []
    assert outcome.blocked[0].error_message == "Missing required arguments: description"


def test_blank_required_argument_counts_as_missing(registry):
    plan = Plan([PlannedCall("ToDos", "update_todo", {"todoId": " ", "description": None})])
    outcome = validate_plan(plan, _context(registry))
    assert outcome.blocked[0].error_message == (
        "Missing required arguments: todoId, description"
    )


def test_bulk_level_call_needs_explicit_target(registry):
    plan = Plan(
        [
            PlannedCall("ToDos", "set_all_priority", {"todoIds": "", "priority": "red"}),
            PlannedCall("ToDos", "set_all_energy", {"todoIds": "all", "energy": "low"}),
        ]
    )
    outcome = validate_plan(plan, _context(registry))
    assert [c.function_name for c in outcome.approved] == ["set_all_energy"]
    assert outcome.blocked[0].error_message == "Missing required arguments: todoIds"


def test_unknown_plugin(registry):
    plan = Plan([PlannedCall("Weather", "get_forecast")])
    outcome = validate_plan(plan, _context(registry))
    assert outcome.blocked[0].error_message == "Unknown plugin 'Weather'."


def test_unknown_function(registry):
    plan = Plan([PlannedCall("ToDos", "archive_todo", {"todoId": TODO_ID})])
    outcome = validate_plan(plan, _context(registry))
    assert outcome.blocked[0].error_message == "Unknown function 'archive_todo' for plugin 'ToDos'."


def test_missing_names(registry):
    plan = Plan([PlannedCall("", "get_time"), PlannedCall("Time", "")])
    outcome = validate_plan(plan, _context(registry))
    assert [r.error_message for r in outcome.blocked] == [
        "Plugin name is missing.",
        "Function name is missing.",
    ]


def test_calls_beyond_capacity_are_blocked(registry):
    calls = [
        PlannedCall("ToDos", "create_todo", {"description": f"task {i}"}) for i in range(3)
    ] + [PlannedCall("Time", "get_time"), PlannedCall("Time", "get_datetime")]
    calls += [PlannedCall("ToDos", "list_todos"), PlannedCall("Person", "get_timezone")]
    plan = Plan(calls)

    outcome = validate_plan(plan, _context(registry))

    assert len(outcome.approved) == 5
    assert len(outcome.blocked) == 2
    assert all(r.error_message == LIMIT_REACHED_MESSAGE for r in outcome.blocked)
    assert [r.full_name for r in outcome.blocked] == ["ToDos.list_todos", "Person.get_timezone"]
    _assert_partition(plan, outcome)


def test_capacity_counts_approved_calls_only(registry):
    plan = Plan(
        [PlannedCall("Nope", "x")] * 3
        + [PlannedCall("Time", "get_time"), PlannedCall("Time", "get_datetime")]
    )
    config = GovernanceConfig(max_calls_per_plan=2)
    outcome = validate_plan(plan, _context(registry), config=config)
    assert len(outcome.approved) == 2
    assert len(outcome.blocked) == 3


def test_repeated_calls_are_blocked(registry):
    plan = Plan([PlannedCall("ToDos", "list_todos") for _ in range(5)])
    outcome = validate_plan(plan, _context(registry))
    assert len(outcome.approved) == 3
    assert len(outcome.blocked) == 2
    assert all("Repeated tool call" in r.error_message for r in outcome.blocked)
    assert outcome.blocked[0].error_message == REPEATED_CALL_MESSAGE


def test_repetition_resets_on_different_call(registry):
    plan = Plan(
        [PlannedCall("Time", "get_time")] * 3
        + [PlannedCall("Time", "get_datetime")]
        + [PlannedCall("Time", "get_time")]
    )
    outcome = validate_plan(plan, _context(registry))
    assert len(outcome.approved) == 5
    assert outcome.blocked == []


def test_repetition_key_is_case_insensitive(registry):
    plan = Plan(
        [
            PlannedCall("Time", "get_time"),
            PlannedCall("time", "GET_TIME"),
            PlannedCall("TIME", "Get_Time"),
            PlannedCall("Time", "get_time"),
        ]
    )
    outcome = validate_plan(plan, _context(registry))
    assert len(outcome.approved) == 3
    assert outcome.blocked[0].error_message == REPEATED_CALL_MESSAGE


def test_repeated_timezone_calls_count_even_when_blocked_by_policy(registry):
    plan = Plan([_set_timezone() for _ in range(4)])
    outcome = validate_plan(plan, _context(registry, "PST"))
    assert [r.error_message for r in outcome.blocked] == [TIMEZONE_CONTEXT_MESSAGE] * 3 + [
        REPEATED_CALL_MESSAGE
    ]


def test_normalizes_argument_keys(registry):
    plan = Plan([PlannedCall("Person", "set_timezone", {"Timezone": "PST"})])
    outcome = validate_plan(plan, _context(registry, "my timezone is PST"))
    assert outcome.approved[0].arguments == {"timezone": "PST"}


def test_approved_calls_are_copies(registry):
    call = PlannedCall("ToDos", "create_todo", {"Description": "Buy milk"})
    outcome = validate_plan(Plan([call]), _context(registry))
    assert outcome.approved[0] is not call
    assert call.arguments == {"Description": "Buy milk"}


def test_delete_after_create_in_same_plan_is_blocked(registry):
    plan = Plan(
        [
            PlannedCall("ToDos", "create_todo", {"description": "Buy milk"}),
            PlannedCall("ToDos", "delete_todo", {"todoId": TODO_ID}),
        ]
    )
    outcome = validate_plan(plan, _context(registry))
    assert len(outcome.approved) == 1
    assert outcome.blocked[0].full_name == "ToDos.delete_todo"
    assert "right after create_todo" in outcome.blocked[0].error_message


def test_undo_blocked_even_when_create_was_blocked(registry):
    plan = Plan(
        [
            PlannedCall("ToDos", "create_todo", {}),
            PlannedCall("ToDos", "complete_todo", {"todoId": TODO_ID}),
        ]
    )
    outcome = validate_plan(plan, _context(registry))
    assert outcome.approved == []
    assert [r.function_name for r in outcome.blocked] == ["create_todo", "complete_todo"]
    assert "right after create_todo" in outcome.blocked[1].error_message


def test_undo_before_create_is_allowed(registry):
    plan = Plan(
        [
            PlannedCall("Reminders", "cancel_reminder", {"reminderId": "r1"}),
            PlannedCall("Reminders", "create_reminder", {"message": "m", "reminderTime": "in 5m"}),
        ]
    )
    outcome = validate_plan(plan, _context(registry))
    assert len(outcome.approved) == 2


def test_custom_policies_replace_defaults(registry):
    class DenyAll:
        def applies_to(self, call):
            return True

        def check(self, call, approved, context):
            return "denied"

    plan = Plan([PlannedCall("Time", "get_time"), _set_timezone()])
    outcome = validate_plan(plan, _context(registry), policies=[DenyAll()])
    assert [r.error_message for r in outcome.blocked] == ["denied", "denied"]


def test_context_is_not_mutated(registry):
    messages = [Message(role="user", content="hi")]
    context = ValidationContext(registry=registry, recent_messages=messages)
    validate_plan(Plan([PlannedCall("Time", "get_time")]), context)
    assert len(messages) == 1
    assert len(registry) == 4


def test_blocked_result_carries_serialized_arguments(registry):
    plan = Plan([PlannedCall("Weather", "get_forecast", {"city": "Oslo"})])
    outcome = validate_plan(plan, _context(registry))
    assert outcome.blocked[0].arguments == '{"city": "Oslo"}'


def test_missing_required_arguments_helper(registry):
    resolved = resolve(registry, "ToDos", "set_priority")
    assert missing_required_arguments(resolved, {"TODOID": TODO_ID}) == ["priority"]


def test_normalize_arguments_lowercases_keys():
    call = PlannedCall("A", "b", {"TodoId": "1", "X": None})
    assert normalize_arguments(call).arguments == {"todoid": "1", "x": None}
