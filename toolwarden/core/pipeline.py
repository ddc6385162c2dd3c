"""
Plan mode, end to end.

An upstream planning step produces a plan document. This module parses it,
validates it against the current registry and conversation, executes the
approved calls and returns the full audit list that response generation
renders as "actions taken".
"""

from __future__ import annotations

import asyncio

from loguru import logger

from toolwarden.config.schema import GovernanceConfig
from toolwarden.core.executor import execute_all
from toolwarden.core.models import CallResult, Plan, ValidationContext, format_actions_summary
from toolwarden.core.plan import PlanParseError, parse_plan
from toolwarden.core.validator import validate_plan


async def run_plan(
    plan: Plan,
    context: ValidationContext,
    *,
    config: GovernanceConfig | None = None,
    cancellation: asyncio.Event | None = None,
) -> list[CallResult]:
    """
    Validate and execute a plan.

    Returns:
        Blocked results first, then one result per executed call.
    """
    outcome = validate_plan(plan, context, config=config)
    results = list(outcome.blocked)
    executed: list[CallResult] = []
    if outcome.approved:
        executed = await execute_all(outcome.approved, context.registry, cancellation)
        results.extend(executed)

    logger.info(
        "tool execution completed: {} approved, {} blocked, {} executed",
        len(outcome.approved),
        len(outcome.blocked),
        len(executed),
    )
    logger.info("actions taken:\n{}", format_actions_summary(results))
    return results


async def run_plan_text(
    content: str | None,
    context: ValidationContext,
    *,
    config: GovernanceConfig | None = None,
    cancellation: asyncio.Event | None = None,
) -> list[CallResult]:
    """
    Parse a plan document and run it.

    A malformed document is logged and treated as an empty plan, so the turn
    still proceeds to response generation with no actions taken.
    """
    try:
        plan = parse_plan(content)
    except PlanParseError as e:
        logger.warning("tool plan parsing failed: {}", e)
        plan = Plan()
    else:
        logger.info("tool plan received: {} calls", len(plan))
    return await run_plan(plan, context, config=config, cancellation=cancellation)
