"""Tool executor: runs the tool calls of one model turn.

All calls of a turn start together and the executor waits for every one
of them before returning: the next request needs the complete set of
results.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from gemini_bridge.core.cancellation import CancellationToken
from gemini_bridge.events.bus import EventBus
from gemini_bridge.tools.registry import ToolRegistry
from gemini_bridge.types import ChatEvent, EventType, ToolCall, ToolResult

_logger = logging.getLogger(__name__)


class ToolExecutor:
    """Runs tool calls through the registry.

    Usage::

        executor = ToolExecutor(registry, event_bus)
        results = await executor.execute(tool_calls, token)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        event_bus: EventBus | None = None,
    ) -> None:
        self._registry = registry
        self._event_bus = event_bus

    async def execute(
        self,
        tool_calls: list[ToolCall],
        token: CancellationToken,
        before: Callable[[ToolCall], Any] | None = None,
        after: Callable[[ToolCall, ToolResult], Any] | None = None,
    ) -> list[tuple[ToolCall, ToolResult]]:
        """Run *tool_calls* concurrently and return results in call order.

        *before* / *after* are optional sync or async hooks invoked around
        each call.  Raises ``RequestCancelledError`` if *token* fires while
        tools are running.
        """

        async def _run_one(tc: ToolCall) -> tuple[ToolCall, ToolResult]:
            if before is not None:
                await _maybe_await(before(tc))
            await self._emit(EventType.TOOL_EXECUTING, {
                "tool": tc.name,
                "id": tc.id,
                "arguments": tc.arguments,
            })
            result = await self._registry.execute(tc.name, tc.arguments)
            if result.success:
                await self._emit(EventType.TOOL_EXECUTED, {
                    "tool": tc.name,
                    "id": tc.id,
                    "output_length": len(result.output),
                })
            else:
                _logger.info("Tool %s failed: %s", tc.name, result.error)
                await self._emit(EventType.TOOL_ERROR, {
                    "tool": tc.name,
                    "id": tc.id,
                    "error": result.error,
                })
            if after is not None:
                await _maybe_await(after(tc, result))
            return tc, result

        return await token.guard(
            asyncio.gather(*(_run_one(tc) for tc in tool_calls)),
        )

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus:
            await self._event_bus.emit(ChatEvent(type=event_type, data=data))


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value
