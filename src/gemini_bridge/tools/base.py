"""Caller-supplied tools the model may call during a streamed chat."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from gemini_bridge.types import ToolParameter, ToolResult


class Tool(ABC):
    """A function the model can request through ``functionCall``.

    Subclasses set ``name``, ``description`` and ``parameters`` as class
    attributes and implement the async ``execute()``; keyword arguments are
    the decoded ``args`` object of the call.
    """

    name: str
    description: str
    parameters: list[ToolParameter]
    max_output: int = 20000  # chars of output returned to the model

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Run the tool."""

    def missing_arguments(self, arguments: dict[str, Any]) -> list[str]:
        return [
            p.name for p in self.parameters
            if p.required and p.name not in arguments
        ]

    def to_function_declaration(self) -> dict[str, Any]:
        """Entry for the request's ``functionDeclarations`` list.

        Tools without parameters omit the ``parameters`` schema, which
        Gemini rejects when its ``properties`` object is empty.
        """
        declaration: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
        }
        if self.parameters:
            declaration["parameters"] = {
                "type": "object",
                "properties": {p.name: _schema(p) for p in self.parameters},
                "required": [p.name for p in self.parameters if p.required],
            }
        return declaration


def _schema(param: ToolParameter) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": param.type, "description": param.description}
    if param.enum:
        schema["enum"] = list(param.enum)
    return schema
