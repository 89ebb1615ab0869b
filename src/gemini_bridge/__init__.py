"""gemini-bridge: Gemini chat adapter with streaming tool calls."""

from gemini_bridge.api import GeminiApi
from gemini_bridge.config import BridgeConfig, ModelConfig, load_config
from gemini_bridge.core.cancellation import CancellationToken
from gemini_bridge.core.options import ChatOptions
from gemini_bridge.types import ChatMessage, LLMResponse, StreamChunk, ToolResult

__all__ = [
    "BridgeConfig",
    "CancellationToken",
    "ChatMessage",
    "ChatOptions",
    "GeminiApi",
    "LLMResponse",
    "ModelConfig",
    "StreamChunk",
    "ToolResult",
    "load_config",
]
