"""Tool registry: lookup, argument decoding and plugin discovery.

Tools are answered, never raised: whatever goes wrong while running a
function call comes back as a failed ``ToolResult`` so the model can read
the problem in the next turn.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from importlib.metadata import entry_points
from typing import Any

from gemini_bridge.tools.base import Tool
from gemini_bridge.types import ToolResult

_logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "gemini_bridge.tools"


def clip_output(text: str, limit: int) -> str:
    """Shorten *text* to about *limit* chars, keeping the first quarter and the end."""
    if limit <= 0 or len(text) <= limit:
        return text
    head = limit // 4
    dropped = len(text) - limit
    return f"{text[:head]}\n\n... [{dropped} chars truncated] ...\n\n{text[-(limit - head):]}"


def decode_arguments(arguments: str | dict[str, Any]) -> dict[str, Any]:
    """Decode the model's string-form arguments.  Raises ``ValueError``."""
    if isinstance(arguments, dict):
        return arguments
    if not arguments.strip():
        return {}
    data = json.loads(arguments)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _failure(message: str) -> ToolResult:
    return ToolResult(success=False, output="", error=message)


class ToolRegistry:
    """Name-indexed set of tools offered to the model."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            _logger.debug("Replacing tool %s", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def tool_names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def function_declarations(self) -> list[dict[str, Any]]:
        return [tool.to_function_declaration() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: str | dict[str, Any]) -> ToolResult:
        """Run tool *name* with the ``args`` of a function call."""
        tool = self._tools.get(name)
        if tool is None:
            available = ", ".join(self._tools) or "none"
            return _failure(f"Unknown tool: {name}. Available: {available}")

        try:
            kwargs = decode_arguments(arguments)
        except ValueError as e:
            return _failure(f"Invalid arguments for '{name}': {e}")
        missing = tool.missing_arguments(kwargs)
        if missing:
            return _failure(f"Missing required argument(s) for '{name}': {', '.join(missing)}")

        try:
            result = await tool.execute(**kwargs)
        except Exception as e:
            _logger.warning("Tool %s raised %s: %s", name, type(e).__name__, e)
            return _failure(f"Tool '{name}' execution failed: {type(e).__name__}: {e}")

        clipped = clip_output(result.output, tool.max_output)
        if clipped is not result.output:
            result = dataclasses.replace(result, output=clipped)
        return result

    def discover(self) -> None:
        """Register tools published under the ``gemini_bridge.tools`` entry point group.

        An entry point may name a ``Tool`` subclass, a ``Tool`` instance or
        a factory returning one.  Broken plugins are logged and skipped.
        """
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                tool = _as_tool(ep.load())
            except Exception:
                _logger.exception("Failed to load tool plugin %s", ep.name)
                continue
            if tool is None:
                _logger.warning("Entry point %s does not provide a Tool", ep.name)
                continue
            self.register(tool)
            _logger.info("Discovered plugin tool: %s", tool.name)


def _as_tool(obj: Any) -> Tool | None:
    if isinstance(obj, Tool):
        return obj
    if callable(obj):
        obj = obj()
    return obj if isinstance(obj, Tool) else None
