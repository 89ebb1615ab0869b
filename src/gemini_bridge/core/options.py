"""Inbound contract from the conversation layer."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from gemini_bridge.config import ModelConfig
from gemini_bridge.types import ChatMessage

_logger = logging.getLogger(__name__)

# Callbacks may be sync or async
Callback = Callable[..., Any]


@dataclass
class ChatOptions:
    """Everything a single chat invocation needs from its caller.

    Callbacks
    ---------
    on_update(text, chunk):
        Accumulated answer text so far and the ``StreamChunk`` that was
        just decoded (thinking or content).
    on_finish(text, response):
        Final answer text and the normalized ``LLMResponse``.  Called at
        most once, never after cancellation or failure.
    on_error(exc):
        A ``BridgeError`` describing what went wrong.
    on_controller(token):
        Receives the ``CancellationToken`` before any request is sent.
    on_before_tool(call) / on_after_tool(call, result):
        Bracket each tool execution.
    """

    messages: list[ChatMessage]
    config: ModelConfig = field(default_factory=ModelConfig)
    on_update: Callback | None = None
    on_finish: Callback | None = None
    on_error: Callback | None = None
    on_controller: Callback | None = None
    on_before_tool: Callback | None = None
    on_after_tool: Callback | None = None


async def invoke(callback: Callback | None, *args: Any) -> None:
    """Call an optional sync or async callback."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
