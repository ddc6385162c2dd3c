"""
CLI entry point for toolwarden.

Commands:
  toolwarden check PLAN       Validate a plan file and show approved/blocked calls
  toolwarden run PLAN         Validate and execute a plan against in-memory stores
  toolwarden functions        List every plugin function the model may call
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import cyclopts

from toolwarden.config.schema import DEFAULT_CONFIG_PATH, Settings
from toolwarden.core.models import Message, Plan, ValidationContext, serialize_arguments
from toolwarden.core.registry import PluginRegistry

app = cyclopts.App(name="toolwarden", help="Validate and execute model-proposed tool calls.")


def build_registry(
    settings: Settings, *, clock: Callable[[], datetime] | None = None
) -> PluginRegistry:
    """
    Construct the built-in plugin set over fresh in-memory stores.

    Args:
        settings: Loaded application settings (plugin defaults).
        clock: Optional time source shared by the time-aware plugins.
    """
    from toolwarden.adapters.persistence.memory import (  # noqa: PLC0415
        InMemoryPersonStore,
        InMemoryReminderStore,
        InMemoryTodoStore,
    )
    from toolwarden.adapters.plugins.clock import TimePlugin  # noqa: PLC0415
    from toolwarden.adapters.plugins.person import PersonPlugin  # noqa: PLC0415
    from toolwarden.adapters.plugins.reminders import RemindersPlugin  # noqa: PLC0415
    from toolwarden.adapters.plugins.todos import TodosPlugin  # noqa: PLC0415

    return PluginRegistry(
        [
            TodosPlugin(InMemoryTodoStore(), clock=clock),
            RemindersPlugin(InMemoryReminderStore(), clock=clock),
            PersonPlugin(
                InMemoryPersonStore(),
                default_timezone=settings.plugins.default_timezone,
                default_daily_task_count=settings.plugins.default_daily_task_count,
            ),
            TimePlugin(clock),
        ]
    )


def _read_plan(path: Path) -> Plan:
    """Load and parse a plan file, exiting with status 2 on failure."""
    from toolwarden.core.plan import PlanParseError, parse_plan  # noqa: PLC0415

    if not path.exists():
        print(f"Error: plan file '{path}' not found")
        raise SystemExit(2)
    try:
        return parse_plan(path.read_text(encoding="utf-8"))
    except PlanParseError as exc:
        print(f"Error: {exc}")
        raise SystemExit(2) from exc


def _load_messages(history: Path | None) -> list[Message]:
    if history is None:
        return []
    from toolwarden.adapters.persistence.history import load_history  # noqa: PLC0415

    return asyncio.run(load_history(history))


@app.command
def check(
    plan: Path,
    history: Path | None = None,
    config: Path = DEFAULT_CONFIG_PATH,
) -> None:
    """
    Validate a plan file without executing anything.

    Prints the approved calls with their normalised arguments, then the blocked
    calls with the reason each was blocked.
    """
    from toolwarden.core.validator import validate_plan  # noqa: PLC0415

    settings = Settings.load(config)
    parsed = _read_plan(plan)
    context = ValidationContext(
        registry=build_registry(settings), recent_messages=_load_messages(history)
    )
    outcome = validate_plan(parsed, context, config=settings.governance)

    print(f"Approved: {len(outcome.approved)}")
    for call in outcome.approved:
        print(f"  {call.key} {serialize_arguments(call.arguments)}")
    print(f"Blocked:  {len(outcome.blocked)}")
    for result in outcome.blocked:
        print(f"  {result.full_name}: {result.error_message}")


@app.command
def run(
    plan: Path,
    history: Path | None = None,
    config: Path = DEFAULT_CONFIG_PATH,
    log_level: str = "WARNING",
) -> None:
    """Validate and execute a plan file, then print the actions taken."""
    from toolwarden.core.models import format_actions_summary  # noqa: PLC0415
    from toolwarden.core.pipeline import run_plan  # noqa: PLC0415

    _setup_logging(log_level)
    settings = Settings.load(config)
    parsed = _read_plan(plan)
    context = ValidationContext(
        registry=build_registry(settings), recent_messages=_load_messages(history)
    )
    results = asyncio.run(run_plan(parsed, context, config=settings.governance))
    print(format_actions_summary(results))


@app.command
def functions(config: Path = DEFAULT_CONFIG_PATH) -> None:
    """List every plugin function with its parameters."""
    from rich.console import Console  # noqa: PLC0415
    from rich.table import Table  # noqa: PLC0415

    registry = build_registry(Settings.load(config))
    table = Table(title="Plugin functions")
    table.add_column("Function", style="cyan", no_wrap=True)
    table.add_column("Parameters")
    for plugin in registry:
        for spec in plugin.functions:
            params = [
                p.name if p.is_required else f"{p.name}?"
                for p in spec.parameters
                if not p.implicit
            ]
            table.add_row(f"{plugin.name}-{spec.name}", ", ".join(params) or "-")
    Console(width=120).print(table)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _setup_logging(level: str) -> None:
    """
    Configure loguru for command output.

    Removes the default loguru stderr handler and replaces it with one that
    uses a consistent timestamp+level format.

    Args:
        level: Log level string (case-insensitive), e.g. "INFO", "DEBUG".

    Raises:
        SystemExit: If the level is not a valid log level name.
    """
    import sys

    from loguru import logger

    normalised = level.upper()
    if normalised not in _VALID_LOG_LEVELS:
        valid = ", ".join(sorted(_VALID_LOG_LEVELS))
        print(f"error: invalid --log-level '{level}'. Valid values: {valid}", file=sys.stderr)
        raise SystemExit(1)

    logger.remove()  # remove loguru's built-in default handler
    logger.add(
        sys.stderr,
        level=normalised,
        format=("<green>{time:YYYY-MM-DD HH:mm:ss}</green> <level>{level:<8}</level> {message}"),
        colorize=True,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
