"""Streaming orchestrator: the SSE and tool-call state machine.

    AWAITING_CHUNK → DECODING → {EMIT_THINKING | EMIT_CONTENT | DISPATCH_TOOL}
                   → AWAITING_CHUNK … → DONE | FAILED

Each streamed payload is decoded into ``StreamChunk``s.  Thinking and
content chunks go straight to the caller; tool calls are collected for the
round.  When a round ends with tool calls, the tools run (all of them,
concurrently), the calls and their results are appended to the request as
new turns and the request is streamed again.  The loop ends with the first
round that asks for no tools.  Every state change is published on the
event bus as ``stream.state``.
"""

from __future__ import annotations

import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from gemini_bridge.core.cancellation import CancellationToken
from gemini_bridge.core.executor import ToolExecutor
from gemini_bridge.core.options import ChatOptions, invoke
from gemini_bridge.errors import (
    BridgeError,
    ContentBlockedError,
    RequestCancelledError,
    RequestTimeoutError,
    ToolLoopLimitError,
)
from gemini_bridge.events.bus import EventBus
from gemini_bridge.llm.client import GeminiClient
from gemini_bridge.llm.request_builder import append_tool_turns
from gemini_bridge.llm.response_parser import (
    block_reason,
    decode_chunk,
    extract_usage,
    finish_reason,
    parse_payload,
)
from gemini_bridge.tools.registry import ToolRegistry
from gemini_bridge.types import (
    ChatEvent,
    ChunkKind,
    EventType,
    LLMResponse,
    StreamChunk,
    StreamState,
    ToolCall,
)

_logger = logging.getLogger(__name__)


@dataclass
class _Accumulated:
    """What the caller has been shown so far, across all rounds."""

    text: str = ""
    thinking: list[str] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)
    last_data: Any = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    reported_blocks: set[str] = field(default_factory=set)


class StreamOrchestrator:
    """Drives one streaming chat invocation to completion.

    Parameters
    ----------
    client:
        Transport used to open each SSE stream.
    registry:
        Caller-supplied tools.  Calls to tools that are not registered are
        answered with an "unknown tool" result.
    event_bus:
        Optional bus receiving lifecycle events.
    max_tool_rounds:
        Maximum number of tool round-trips before giving up.
    """

    def __init__(
        self,
        client: GeminiClient,
        registry: ToolRegistry | None = None,
        event_bus: EventBus | None = None,
        max_tool_rounds: int = 10,
    ) -> None:
        self._client = client
        self._event_bus = event_bus
        self._executor = ToolExecutor(registry or ToolRegistry(), event_bus)
        self._max_tool_rounds = max_tool_rounds
        self.state = StreamState.AWAITING_CHUNK
        self.transitions: list[StreamState] = []

    async def run(
        self,
        url: str,
        payload: dict[str, Any],
        options: ChatOptions,
        token: CancellationToken,
    ) -> LLMResponse | None:
        """Stream *payload* to *url* until the model stops calling tools.

        Returns the final ``LLMResponse``, or ``None`` when the invocation
        was cancelled or failed (``on_error`` has been told why).
        """
        self.transitions = []
        start = time.monotonic()
        acc = _Accumulated()
        rounds = 0

        try:
            while True:
                rounds += 1
                tool_calls = await self._stream_round(url, payload, options, token, acc)
                if not tool_calls:
                    break
                if rounds > self._max_tool_rounds:
                    raise ToolLoopLimitError(
                        f"Model still calling tools after {self._max_tool_rounds} rounds",
                    )

                _logger.debug(
                    "Round %d requested %d tool call(s): %s",
                    rounds, len(tool_calls), [tc.name for tc in tool_calls],
                )
                results = await self._executor.execute(
                    tool_calls,
                    token,
                    before=options.on_before_tool,
                    after=options.on_after_tool,
                )
                token.raise_if_cancelled()
                acc.tool_calls.extend(tool_calls)
                append_tool_turns(payload, results)

            token.raise_if_cancelled()

        except RequestCancelledError:
            await self._set_state(StreamState.DONE)
            if token.timed_out:
                error = RequestTimeoutError("Request timed out")
                await self._emit(EventType.CHAT_ERROR, {"error": str(error)})
                await invoke(options.on_error, error)
            else:
                await self._emit(EventType.CHAT_CANCELLED, {"reason": token.reason})
            return None
        except BridgeError as e:
            await self._set_state(StreamState.FAILED)
            _logger.warning("Stream failed: %s", e)
            await self._emit(EventType.CHAT_ERROR, {"error": str(e)})
            await invoke(options.on_error, e)
            return None

        await self._set_state(StreamState.DONE)
        response = LLMResponse(
            content=acc.text,
            thinking="".join(acc.thinking),
            tool_calls=acc.tool_calls,
            finish_reason=finish_reason(acc.last_data),
            usage=acc.usage,
            model=options.config.model,
            raw_response=acc.last_data,
            latency_ms=(time.monotonic() - start) * 1000,
            rounds=rounds,
        )
        await self._emit(EventType.CHAT_DONE, {
            "content_length": len(acc.text),
            "rounds": rounds,
            "latency_ms": response.latency_ms,
        })
        await invoke(options.on_finish, acc.text, response)
        return response

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _stream_round(
        self,
        url: str,
        payload: dict[str, Any],
        options: ChatOptions,
        token: CancellationToken,
        acc: _Accumulated,
    ) -> list[ToolCall]:
        """Consume one SSE stream; return the tool calls it requested."""
        tool_calls: list[ToolCall] = []
        await self._set_state(StreamState.AWAITING_CHUNK)

        events = self._client.stream(url, payload, token)
        async with aclosing(events):
            async for raw in events:
                token.raise_if_cancelled()
                await self._set_state(StreamState.DECODING)
                data = parse_payload(raw)
                acc.last_data = data
                acc.usage.update(extract_usage(data))
                await self._report_block(data, options, acc)

                for chunk in decode_chunk(data):
                    token.raise_if_cancelled()
                    if chunk.kind is ChunkKind.TOOL_CALL:
                        await self._set_state(StreamState.DISPATCH_TOOL)
                        if chunk.tool_call is not None:
                            tool_calls.append(chunk.tool_call)
                        continue
                    if chunk.kind is ChunkKind.THINKING:
                        await self._set_state(StreamState.EMIT_THINKING)
                        acc.thinking.append(chunk.text)
                    else:
                        await self._set_state(StreamState.EMIT_CONTENT)
                        acc.text += chunk.text
                    await self._deliver(options, acc.text, chunk)

                await self._set_state(StreamState.AWAITING_CHUNK)

        return tool_calls

    async def _report_block(
        self, data: Any, options: ChatOptions, acc: _Accumulated,
    ) -> None:
        reason = block_reason(data)
        if not reason or reason in acc.reported_blocks:
            return
        acc.reported_blocks.add(reason)
        _logger.warning("Prompt blocked: %s", reason)
        error = ContentBlockedError(reason)
        await self._emit(EventType.CHAT_ERROR, {"error": str(error)})
        await invoke(options.on_error, error)

    async def _deliver(self, options: ChatOptions, text: str, chunk: StreamChunk) -> None:
        event_type = (
            EventType.CHAT_THINKING if chunk.is_thinking else EventType.CHAT_CHUNK
        )
        await self._emit(event_type, {"text": chunk.text})
        await invoke(options.on_update, text, chunk)

    async def _set_state(self, state: StreamState) -> None:
        if state is self.state and self.transitions:
            return
        previous = self.state
        _logger.debug("Stream state %s -> %s", previous.value, state.value)
        self.state = state
        self.transitions.append(state)
        await self._emit(EventType.STREAM_STATE, {
            "from": previous.value,
            "to": state.value,
        })

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus:
            await self._event_bus.emit(ChatEvent(type=event_type, data=data))
