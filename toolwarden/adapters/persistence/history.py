"""Read conversation history from a JSONL file (one Message per line).

The plan validator only needs the recent conversation, for the timezone
keyword check. Lines may be partially written, corrupted or from older
versions; such lines are skipped instead of failing the whole load.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path

from loguru import logger

from toolwarden.core.models import Message

_ROLES = {"system", "user", "assistant", "tool"}


def deserialize_message(line: str) -> Message:
    """Deserialize a JSONL line to a Message.

    ``content`` and ``text`` are both accepted for the message body; a missing
    timestamp means "now".

    Raises:
        json.JSONDecodeError, KeyError, TypeError, ValueError: On malformed input.
    """
    d = json.loads(line)
    role = d["role"]
    if role not in _ROLES:
        raise ValueError(f"unknown role {role!r}")
    content = d.get("content", d.get("text", ""))
    if not isinstance(content, str):
        raise TypeError("content must be a string")
    timestamp = d.get("timestamp")
    return Message(
        role=role,
        content=content,
        timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(),
    )


def deserialize_message_safe(line: str) -> Message | None:
    """Best-effort variant of deserialize_message; returns None on failure."""
    try:
        return deserialize_message(line)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
        return None


async def load_history(path: Path, last_n: int | None = None) -> list[Message]:
    """Load messages from a JSONL history file.

    Args:
        path: The history file. A missing file is an empty history.
        last_n: If provided, return only the last N messages.

    Returns:
        List of messages in chronological order.
    """
    if last_n is not None and last_n <= 0:
        return []

    def _read() -> tuple[list[Message], int]:
        if not path.exists():
            return [], 0
        messages: list[Message] = []
        skipped = 0
        for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
            line = raw_line.strip()
            if not line:
                continue
            message = deserialize_message_safe(line)
            if message is None:
                skipped += 1
                continue
            messages.append(message)
        return messages, skipped

    messages, skipped = await asyncio.to_thread(_read)
    if skipped:
        logger.warning("history: skipped {} malformed lines in {}", skipped, path)
    if last_n is not None:
        return messages[-last_n:]
    return messages
