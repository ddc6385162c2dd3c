"""
Execution of approved calls.

Calls run strictly one after another, each awaited to completion before the
next begins. Every call yields exactly one CallResult; expected failures
(unresolvable call, coercion error, exception raised by the handler) are
recorded, never propagated.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Mapping, Sequence

from loguru import logger

from toolwarden.core.coercion import bind_arguments
from toolwarden.core.models import CallResult, PlannedCall, ResolvedCall, serialize_arguments
from toolwarden.core.registry import PluginRegistry
from toolwarden.core.resolver import ResolutionFailure, resolve


class CallCancelledError(Exception):
    """Raised by a handler that observed the cancellation event mid-call."""


async def invoke(
    resolved: ResolvedCall,
    arguments: Mapping[str, str | None],
    cancellation: asyncio.Event | None = None,
) -> str:
    """
    Coerce arguments, run the handler and normalise its return value to text.

    The handler may return a string, an awaitable producing a string, or an
    awaitable producing nothing; None becomes the empty string.

    Raises:
        CoercionError: If an argument cannot be converted.
        Exception: Whatever the handler raises.
    """
    values = bind_arguments(resolved.function.parameters, arguments, cancellation)
    outcome = resolved.function.handler(*values)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    if outcome is None:
        return ""
    return outcome if isinstance(outcome, str) else str(outcome)


async def execute_all(
    calls: Sequence[PlannedCall],
    registry: PluginRegistry,
    cancellation: asyncio.Event | None = None,
) -> list[CallResult]:
    """
    Run approved calls in order and return their audit records.

    Each call is resolved again rather than trusting the approved list. When the
    cancellation event is set the batch stops with the results produced so far;
    calls already executed are not rolled back.

    Args:
        calls: Approved calls, typically ValidationOutcome.approved.
        registry: The registry the calls resolve against.
        cancellation: Optional event; also handed to handlers that declare the
            implicit cancellation parameter.

    Returns:
        One CallResult per call attempted.
    """
    results: list[CallResult] = []
    for call in calls:
        if cancellation is not None and cancellation.is_set():
            logger.info("executor: cancelled, {} of {} calls run", len(results), len(calls))
            break

        arguments = call.arguments or {}
        record = CallResult(
            plugin_name=call.plugin_name,
            function_name=call.function_name,
            arguments=serialize_arguments(arguments),
        )

        resolved = resolve(registry, call.plugin_name, call.function_name)
        if isinstance(resolved, ResolutionFailure):
            record.success = False
            record.error_message = resolved.message
            results.append(record)
            continue

        try:
            record.result = await invoke(resolved, arguments, cancellation)
        except CallCancelledError as e:
            record.success = False
            record.error_message = str(e) or "Cancelled."
            results.append(record)
            logger.info("executor: {} cancelled mid-call", call.key)
            break
        except Exception as e:
            logger.warning("executor: {} failed: {}", call.key, e)
            record.success = False
            record.error_message = str(e)
        results.append(record)

    return results


def raise_if_cancelled(cancellation: asyncio.Event | None) -> None:
    """Helper for handlers that accept the implicit cancellation parameter."""
    if cancellation is not None and cancellation.is_set():
        raise CallCancelledError("Cancelled.")
