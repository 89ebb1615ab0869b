"""Streaming and tool-call core for gemini-bridge."""

from gemini_bridge.core.cancellation import CancellationToken
from gemini_bridge.core.executor import ToolExecutor
from gemini_bridge.core.options import ChatOptions
from gemini_bridge.core.orchestrator import StreamOrchestrator

__all__ = [
    "CancellationToken",
    "ChatOptions",
    "StreamOrchestrator",
    "ToolExecutor",
]
