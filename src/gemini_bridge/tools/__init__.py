"""Tool system for gemini-bridge."""

from gemini_bridge.tools.base import Tool
from gemini_bridge.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolRegistry"]
