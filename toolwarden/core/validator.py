"""
Plan validation.

Partitions a proposed plan into approved and blocked calls before anything
runs. Calls are examined strictly in order and each passes through a fixed
policy chain; the first failing policy decides the block reason and the rest
of the plan is still examined.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from loguru import logger

from toolwarden.config.schema import GovernanceConfig
from toolwarden.core.coercion import lookup_argument
from toolwarden.core.models import (
    CallResult,
    Plan,
    PlannedCall,
    ResolvedCall,
    ValidationContext,
    ValidationOutcome,
)
from toolwarden.core.policies import (
    LIMIT_REACHED_MESSAGE,
    REPEATED_CALL_MESSAGE,
    RepetitionTracker,
    SafetyPolicy,
    default_policies,
)
from toolwarden.core.resolver import ResolutionFailure, resolve


def missing_required_arguments(
    resolved: ResolvedCall, arguments: Mapping[str, str | None]
) -> list[str]:
    """Names of required parameters with no present, non-blank argument."""
    missing: list[str] = []
    for param in resolved.function.required_parameters:
        present, value = lookup_argument(arguments, param.name)
        if not present or value is None or not value.strip():
            missing.append(param.name)
    return missing


def normalize_arguments(call: PlannedCall) -> PlannedCall:
    """Return a copy of the call with lower-cased argument keys."""
    return PlannedCall(
        plugin_name=call.plugin_name,
        function_name=call.function_name,
        arguments={key.lower(): value for key, value in (call.arguments or {}).items()},
    )


def validate_plan(
    plan: Plan,
    context: ValidationContext,
    *,
    config: GovernanceConfig | None = None,
    policies: Sequence[SafetyPolicy] | None = None,
) -> ValidationOutcome:
    """
    Decide which calls of a plan are allowed to run.

    Policy chain per call, in order:
    1. capacity: no more than max_calls_per_plan approved calls
    2. resolution: plugin and function must exist
    3. argument completeness: every required parameter has a non-blank value
    4. repetition: the same plugin.function more than max_consecutive_repeats
       times in a row is blocked
    5. domain safety policies that apply to the call, given the calls before it

    Args:
        plan: The proposed calls.
        context: Registry and recent conversation; never mutated.
        config: Limits; defaults apply when omitted.
        policies: Domain safety policies; built from config when omitted.

    Returns:
        ValidationOutcome with one entry per planned call.
    """
    config = config or GovernanceConfig()
    policies = default_policies(config) if policies is None else policies
    outcome = ValidationOutcome()
    repetition = RepetitionTracker()

    for index, call in enumerate(plan.tool_calls):
        if len(outcome.approved) >= config.max_calls_per_plan:
            _block(outcome, call, LIMIT_REACHED_MESSAGE)
            continue

        resolved = resolve(context.registry, call.plugin_name, call.function_name)
        if isinstance(resolved, ResolutionFailure):
            _block(outcome, call, resolved.message)
            continue

        missing = missing_required_arguments(resolved, call.arguments or {})
        if missing:
            _block(outcome, call, f"Missing required arguments: {', '.join(missing)}")
            continue

        if repetition.observe(call.key) >= config.max_consecutive_repeats:
            _block(outcome, call, REPEATED_CALL_MESSAGE)
            continue

        reason = _first_violation(call, plan.tool_calls[:index], context, policies)
        if reason is not None:
            _block(outcome, call, reason)
            continue

        outcome.approved.append(normalize_arguments(call))

    logger.debug(
        "plan validated: {} approved, {} blocked",
        len(outcome.approved),
        len(outcome.blocked),
    )
    return outcome


def _first_violation(
    call: PlannedCall,
    earlier: Sequence[PlannedCall],
    context: ValidationContext,
    policies: Sequence[SafetyPolicy],
) -> str | None:
    for policy in policies:
        if not policy.applies_to(call):
            continue
        reason = policy.check(call, earlier, context)
        if reason is not None:
            return reason
    return None


def _block(outcome: ValidationOutcome, call: PlannedCall, reason: str) -> None:
    logger.warning("validator: blocked {} ({})", call.key, reason)
    outcome.blocked.append(CallResult.blocked(call, reason))
