"""Shared data types for gemini-bridge."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Union


# ---------------------------------------------------------------------------
# Conversation types
# ---------------------------------------------------------------------------

class Role(str, enum.Enum):
    """Roles a generic chat message can carry."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    FUNCTION = "function"
    TOOL = "tool"


MessageContent = Union[str, list[dict[str, Any]]]


@dataclass(frozen=True)
class ChatMessage:
    """A message in the conversation history.

    ``content`` is either plain text or a list of multimodal parts::

        [{"type": "text", "text": "..."},
         {"type": "image_url", "image_url": {"url": "data:image/png;base64,..."}}]
    """

    role: str
    content: MessageContent = ""

    def text_content(self) -> str:
        if isinstance(self.content, str):
            return self.content
        for part in self.content:
            if part.get("type") == "text":
                return part.get("text", "") or ""
        return ""

    def images(self) -> list[str]:
        if isinstance(self.content, str):
            return []
        urls: list[str] = []
        for part in self.content:
            if part.get("type") != "image_url":
                continue
            url = (part.get("image_url") or {}).get("url", "")
            if url:
                urls.append(url)
        return urls


# ---------------------------------------------------------------------------
# Tool types
# ---------------------------------------------------------------------------

@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    enum: list[str] | None = None


def new_call_id() -> str:
    return uuid.uuid4().hex[:21]


@dataclass
class ToolCall:
    """A function call requested by the model.

    ``arguments`` is kept in string form; the tool runner decodes it.
    """

    name: str
    arguments: str = "{}"
    id: str = field(default_factory=new_call_id)


@dataclass
class ToolResult:
    """Result of a tool execution."""

    success: bool
    output: str
    error: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> str:
        if self.success:
            return self.output
        if self.output:
            return f"[Tool Error] {self.error}\n{self.output}"
        return f"[Tool Error] {self.error}"


# ---------------------------------------------------------------------------
# Stream types
# ---------------------------------------------------------------------------

class ChunkKind(enum.Enum):
    THINKING = "thinking"
    CONTENT = "content"
    TOOL_CALL = "tool_call"
    DONE = "done"
    ERROR = "error"


@dataclass
class StreamChunk:
    """One decoded unit from the wire stream."""

    kind: ChunkKind
    text: str = ""
    tool_call: ToolCall | None = None
    error: Exception | None = None

    @property
    def is_thinking(self) -> bool:
        return self.kind is ChunkKind.THINKING


class StreamState(enum.Enum):
    """States of the streaming orchestrator."""

    AWAITING_CHUNK = "awaiting_chunk"
    DECODING = "decoding"
    EMIT_THINKING = "emit_thinking"
    EMIT_CONTENT = "emit_content"
    DISPATCH_TOOL = "dispatch_tool"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# LLM types
# ---------------------------------------------------------------------------

@dataclass
class LLMResponse:
    """Normalized final answer of one chat invocation."""

    content: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    model: str = ""
    raw_response: Any = None
    latency_ms: float = 0
    rounds: int = 1

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Event types published on the EventBus."""

    CHAT_STARTED = "chat.started"
    CHAT_CHUNK = "chat.chunk"
    CHAT_THINKING = "chat.thinking"
    CHAT_DONE = "chat.done"
    CHAT_ERROR = "chat.error"
    CHAT_CANCELLED = "chat.cancelled"

    TOOL_EXECUTING = "tool.executing"
    TOOL_EXECUTED = "tool.executed"
    TOOL_ERROR = "tool.error"

    STREAM_STATE = "stream.state"


@dataclass
class ChatEvent:
    """Event emitted by the chat core via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
