"""
Limits and safety policies for proposed tool calls.

The numeric limits are shared by plan validation and the autonomous-mode loop
guard. Domain safety policies are context-sensitive checks that only apply to
recognised sensitive actions; new ones are added by implementing SafetyPolicy.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Protocol

from toolwarden.config.schema import GovernanceConfig, UndoRule
from toolwarden.core.models import Message, PlannedCall, ValidationContext

MAX_CALLS_PER_PLAN = 5
MAX_CONSECUTIVE_REPEATS = 3
MAX_CALLS_PER_REQUEST = 5

PERSON_PLUGIN_NAME = "Person"
SET_TIMEZONE_FUNCTION = "set_timezone"

LIMIT_REACHED_MESSAGE = "Tool call limit reached for this request."
REPEATED_CALL_MESSAGE = "Repeated tool call detected; blocked to prevent loops."
TIMEZONE_CONTEXT_MESSAGE = (
    "Timezone changes require an explicit user request or timezone context."
)


def same_name(a: str | None, b: str | None) -> bool:
    return (a or "").lower() == (b or "").lower()


def is_set_timezone(plugin_name: str | None, function_name: str | None) -> bool:
    return same_name(plugin_name, PERSON_PLUGIN_NAME) and same_name(
        function_name, SET_TIMEZONE_FUNCTION
    )


class RepetitionTracker:
    """Counts how many times in a row the same plugin.function key was seen."""

    def __init__(self) -> None:
        self.last_key = ""
        self.consecutive_repeats = 0

    def observe(self, key: str) -> int:
        """Record a key and return the consecutive repeat count (0 for a new key)."""
        if key.lower() == self.last_key.lower():
            self.consecutive_repeats += 1
        else:
            self.consecutive_repeats = 0
            self.last_key = key
        return self.consecutive_repeats


class SafetyPolicy(Protocol):
    """A domain rule that may veto a call otherwise allowed to run."""

    def applies_to(self, call: PlannedCall) -> bool:
        """Return True if the call is a sensitive action this policy governs."""
        ...

    def check(
        self,
        call: PlannedCall,
        earlier: Sequence[PlannedCall],
        context: ValidationContext,
    ) -> str | None:
        """Return a block reason, or None to allow the call."""
        ...


CONVERSATION_ROLES = ("user", "assistant")


def has_timezone_context(messages: Iterable[Message], keywords: Sequence[str]) -> bool:
    """
    True if a user or assistant message mentions one of the keywords.

    Matching is a case-insensitive substring test. System prompts and tool
    results are ignored; only what was said in the conversation counts.
    """
    lowered = [k.lower() for k in keywords]
    return any(
        k in message.content.lower()
        for message in messages
        if message.role in CONVERSATION_ROLES
        for k in lowered
    )


class TimezoneContextPolicy:
    """
    Block timezone changes nobody asked for.

    A set_timezone call is allowed only when the recent conversation mentions a
    timezone keyword. Only the topic is checked, not the requested value.
    """

    def __init__(self, keywords: Sequence[str] = ("timezone", "time zone", "tz")) -> None:
        self._keywords = tuple(keywords)

    def applies_to(self, call: PlannedCall) -> bool:
        return is_set_timezone(call.plugin_name, call.function_name)

    def check(
        self,
        call: PlannedCall,
        earlier: Sequence[PlannedCall],
        context: ValidationContext,
    ) -> str | None:
        if has_timezone_context(context.recent_messages, self._keywords):
            return None
        return TIMEZONE_CONTEXT_MESSAGE


class UndoAfterCreatePolicy:
    """
    Block undoing something the same plan just created.

    An undo-type call is blocked when a create-type call for the same plugin
    appears earlier in the plan, whether or not that call was approved.
    """

    def __init__(self, rules: Mapping[str, UndoRule]) -> None:
        self._rules = {name.lower(): rule for name, rule in rules.items()}

    def _rule(self, plugin_name: str) -> UndoRule | None:
        return self._rules.get(plugin_name.lower())

    def applies_to(self, call: PlannedCall) -> bool:
        rule = self._rule(call.plugin_name)
        return rule is not None and any(same_name(call.function_name, f) for f in rule.undo)

    def check(
        self,
        call: PlannedCall,
        earlier: Sequence[PlannedCall],
        context: ValidationContext,
    ) -> str | None:
        rule = self._rule(call.plugin_name)
        if rule is None:
            return None
        for previous in earlier:
            if not same_name(previous.plugin_name, call.plugin_name):
                continue
            if any(same_name(previous.function_name, f) for f in rule.create):
                return (
                    f"Cannot {call.function_name} right after {previous.function_name} "
                    "in the same request; blocked to prevent undoing a just-created item."
                )
        return None


def default_policies(config: GovernanceConfig | None = None) -> list[SafetyPolicy]:
    """Build the standard policy list from configuration."""
    config = config or GovernanceConfig()
    return [
        TimezoneContextPolicy(config.timezone_keywords),
        UndoAfterCreatePolicy(config.undo_rules),
    ]
