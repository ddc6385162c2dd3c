"""
Autonomous-mode request loop for toolwarden.

Here the model calls plugin functions itself, one at a time, inside its own
reasoning loop. Each attempted call passes through an InvocationLoopGuard
before the real function runs. The loop has no knowledge of network
protocols; the model is reached through the injected LLMPort.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from loguru import logger

from toolwarden.config.schema import GovernanceConfig
from toolwarden.core.executor import invoke
from toolwarden.core.guard import Aborted, InvocationLoopGuard
from toolwarden.core.models import Message, RequestResult, ToolCall, ToolDefinition
from toolwarden.core.ports import LLMPort
from toolwarden.core.registry import PluginRegistry
from toolwarden.core.resolver import ResolutionFailure, resolve


class UnresolvedCallError(LookupError):
    """The model named a tool that does not resolve to a plugin function."""


def _format_llm_error(exc: Exception) -> str:
    """Convert an LLM adapter exception into a one-line error message."""
    name = type(exc).__name__
    msg = str(exc)
    first_line = msg.splitlines()[0] if msg else name
    return f"Error ({name}): {first_line}"


def split_tool_name(name: str) -> tuple[str, str]:
    """Split an exported ``Plugin-function`` tool name. No separator means no plugin."""
    plugin_name, sep, function_name = name.partition("-")
    if not sep:
        return "", name
    return plugin_name, function_name


def _stringify(arguments: dict[str, Any]) -> dict[str, str | None]:
    stringified: dict[str, str | None] = {}
    for key, value in arguments.items():
        if value is None or isinstance(value, str):
            stringified[key] = value
        elif isinstance(value, bool):
            stringified[key] = "true" if value else "false"
        else:
            stringified[key] = json.dumps(value) if isinstance(value, dict | list) else str(value)
    return stringified


class AutoInvokeLoop:
    """
    Drives one autonomous-mode request.

    For each request, the loop:
    1. Calls the LLM with the registry's tool definitions
    2. If the LLM returns tool calls, runs them strictly one after another
       through a fresh guard and feeds each value back as a tool message
    3. If the LLM returns text only, that text is the response

    A loop-termination outcome from the guard ends the request successfully
    with empty content and the results collected so far.
    """

    def __init__(self, llm: LLMPort, config: GovernanceConfig | None = None) -> None:
        """
        Args:
            llm: The language model adapter.
            config: Limits for the guard and the number of model round-trips.
        """
        self._llm = llm
        self._config = config or GovernanceConfig()

    async def _run_llm(
        self, messages: list[Message], tool_definitions: list[ToolDefinition]
    ) -> tuple[str, list[ToolCall]]:
        tool_calls: list[ToolCall] = []
        text_chunks: list[str] = []

        response_stream = await self._llm.chat(messages, tool_definitions)
        async for chunk in response_stream:
            if isinstance(chunk, str):
                text_chunks.append(chunk)
            elif isinstance(chunk, list):
                tool_calls = chunk
            elif isinstance(chunk, tuple):
                tool_calls = chunk[0]

        return "".join(text_chunks), tool_calls

    async def run(
        self,
        messages: list[Message],
        registry: PluginRegistry,
        cancellation: asyncio.Event | None = None,
    ) -> RequestResult:
        """
        Run the model until it stops calling tools.

        Args:
            messages: Conversation so far, including the system prompt. Tool
                messages are appended to a copy; the caller's list is untouched.
            registry: Plugins the model may call this turn.
            cancellation: Optional event handed to functions that accept it.

        Returns:
            RequestResult carrying the final text and every CallResult.
        """
        guard = InvocationLoopGuard(
            max_calls=self._config.max_calls_per_request,
            max_consecutive_repeats=self._config.max_consecutive_repeats,
        )
        conversation = list(messages)
        tool_definitions = registry.get_definitions()
        logger.info("request started: {} messages, {} plugins", len(conversation), len(registry))

        try:
            for _ in range(self._config.max_tool_rounds):
                text, tool_calls = await self._run_llm(conversation, tool_definitions)
                if not tool_calls:
                    logger.info("response received with {} tool calls", len(guard.results))
                    return RequestResult(success=True, content=text, tool_calls=guard.results)

                conversation.append(Message(role="assistant", content=text, tool_calls=tool_calls))

                # Tool calls never run concurrently; the guard relies on seeing them in order.
                for tool_call in tool_calls:
                    plugin_name, function_name = split_tool_name(tool_call.name)
                    arguments = _stringify(tool_call.arguments)

                    async def _call(
                        plugin_name: str = plugin_name,
                        function_name: str = function_name,
                        arguments: dict[str, str | None] = arguments,
                    ) -> str:
                        resolved = resolve(registry, plugin_name, function_name)
                        if isinstance(resolved, ResolutionFailure):
                            raise UnresolvedCallError(resolved.message)
                        return await invoke(resolved, arguments, cancellation)

                    outcome = await guard.invoke(
                        plugin_name or "Unknown",
                        function_name,
                        _call,
                        arguments=json.dumps(arguments, ensure_ascii=False),
                    )
                    if isinstance(outcome, Aborted):
                        logger.warning(
                            "request terminated by loop detection, {} tool calls ran before it",
                            len(outcome.partial_results),
                        )
                        return RequestResult(
                            success=True, content="", tool_calls=outcome.partial_results
                        )

                    conversation.append(
                        Message(role="tool", content=outcome.value, tool_call_id=tool_call.id)
                    )
        except Exception as e:
            logger.error(
                "request failed: {} ({} tool calls ran before the failure)",
                type(e).__name__,
                len(guard.results),
            )
            return RequestResult.failure(_format_llm_error(e), tool_calls=guard.results)

        return RequestResult.failure(
            "Error: maximum tool call rounds exceeded.", tool_calls=guard.results
        )
