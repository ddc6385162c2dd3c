"""
Invocation loop guard for autonomous mode.

When the model calls functions itself, one at a time, there is no plan to
validate up front. The guard sees each attempt as it happens and applies the
same limits as plan validation:

- the same plugin.function called more than MAX_CONSECUTIVE_REPEATS times in a
  row aborts the whole loop (Aborted outcome)
- once MAX_CALLS_PER_REQUEST calls have run, every later attempt is answered
  with a synthetic failure the model can read, and the real function is skipped

One guard instance covers exactly one request.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from loguru import logger

from toolwarden.core.models import CallResult
from toolwarden.core.policies import (
    LIMIT_REACHED_MESSAGE,
    MAX_CALLS_PER_REQUEST,
    MAX_CONSECUTIVE_REPEATS,
    RepetitionTracker,
)


@dataclass(frozen=True)
class Continue:
    """The loop may go on. ``value`` is what the model sees as the function's return."""

    value: str
    result: CallResult


@dataclass(frozen=True)
class Aborted:
    """The loop must stop. Not an error: the caller reports a successful, empty turn."""

    reason: str
    partial_results: list[CallResult] = field(default_factory=list)


GuardOutcome = Continue | Aborted


class InvocationLoopGuard:
    """Per-request state machine governing autonomous function invocations."""

    def __init__(
        self,
        *,
        max_calls: int = MAX_CALLS_PER_REQUEST,
        max_consecutive_repeats: int = MAX_CONSECUTIVE_REPEATS,
    ) -> None:
        self._max_calls = max_calls
        self._max_consecutive_repeats = max_consecutive_repeats
        self._repetition = RepetitionTracker()
        self._limit_reached = False
        self._count = 0
        self.results: list[CallResult] = []

    @property
    def limit_reached(self) -> bool:
        return self._limit_reached

    @property
    def count(self) -> int:
        """Number of real function executions so far."""
        return self._count

    async def invoke(
        self,
        plugin_name: str,
        function_name: str,
        call: Callable[[], Awaitable[str]],
        *,
        arguments: str = "",
    ) -> GuardOutcome:
        """
        Run one attempted invocation through the guard.

        Args:
            plugin_name: Plugin the model addressed.
            function_name: Function the model addressed.
            call: Zero-argument coroutine factory running the real function.
            arguments: Serialized arguments for the audit record.

        Returns:
            Continue with the value to hand back to the model, or Aborted when
            the loop must stop.
        """
        key = f"{plugin_name}.{function_name}"
        logger.debug("guard: attempt {}", key)

        repeats = self._repetition.observe(key)
        if repeats >= self._max_consecutive_repeats:
            logger.error("guard: loop detected, {} called {} times in a row", key, repeats + 1)
            return Aborted(
                reason=(
                    f"Tool calling loop terminated: {key} was called {repeats + 1} times "
                    "consecutively, indicating an infinite loop."
                ),
                partial_results=list(self.results),
            )

        record = CallResult(
            plugin_name=plugin_name, function_name=function_name, arguments=arguments
        )

        if self._limit_reached or self._count >= self._max_calls:
            self._limit_reached = True
            logger.warning("guard: blocked {} ({})", key, LIMIT_REACHED_MESSAGE)
            record.success = False
            record.error_message = LIMIT_REACHED_MESSAGE
            self.results.append(record)
            return Continue(value=LIMIT_REACHED_MESSAGE, result=record)

        self._count += 1
        started = time.perf_counter()
        try:
            value = await call()
        except Exception as e:
            logger.warning("guard: {} failed: {}", key, e)
            record.success = False
            record.error_message = str(e)
            self.results.append(record)
            return Continue(value=f"Error: {e}", result=record)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.debug("guard: {} completed in {:.0f}ms", key, elapsed_ms)
        record.result = value
        self.results.append(record)
        return Continue(value=value, result=record)
