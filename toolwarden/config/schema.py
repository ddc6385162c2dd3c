"""
Configuration schema for toolwarden.

Settings are loaded from a JSON file (default: ~/.toolwarden/config.json).
Missing keys use their default values.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

DEFAULT_CONFIG_PATH = Path.home() / ".toolwarden" / "config.json"


class UndoRule(BaseModel):
    """Functions of one plugin that create a resource, and those that undo it."""

    create: list[str] = Field(default_factory=list)
    undo: list[str] = Field(default_factory=list)


def _default_undo_rules() -> dict[str, UndoRule]:
    return {
        "ToDos": UndoRule(create=["create_todo"], undo=["complete_todo", "delete_todo"]),
        "Reminders": UndoRule(create=["create_reminder"], undo=["cancel_reminder"]),
    }


class GovernanceConfig(BaseModel):
    """Limits and safety rules applied to proposed tool calls."""

    max_calls_per_plan: int = 5
    max_consecutive_repeats: int = 3
    max_calls_per_request: int = 5
    # Maximum number of model round-trips in autonomous mode.
    max_tool_rounds: int = 20
    timezone_keywords: list[str] = Field(
        default_factory=lambda: ["timezone", "time zone", "tz"]
    )
    undo_rules: dict[str, UndoRule] = Field(default_factory=_default_undo_rules)

    @model_validator(mode="after")
    def _validate_limits(self) -> GovernanceConfig:
        """Reject limits that would disable a policy by accident."""
        for name in (
            "max_calls_per_plan",
            "max_consecutive_repeats",
            "max_calls_per_request",
            "max_tool_rounds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"governance.{name} must be > 0")
        return self


class PluginsConfig(BaseModel):
    """Defaults used by the built-in plugins."""

    default_timezone: str = "UTC"
    default_daily_task_count: int = 5


class Settings(BaseModel):
    """Root configuration object for toolwarden."""

    governance: GovernanceConfig = Field(default_factory=GovernanceConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @classmethod
    def load(cls, path: Path = DEFAULT_CONFIG_PATH) -> Settings:
        """
        Load settings from a JSON file.

        Missing keys use their default values.
        The file is optional; if it doesn't exist, all defaults apply.
        """
        if not path.exists():
            return cls()
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls.model_validate(data)

    def save(self, path: Path = DEFAULT_CONFIG_PATH) -> None:
        """Persist settings to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            self.model_dump_json(indent=2, exclude_none=False),
            encoding="utf-8",
        )
