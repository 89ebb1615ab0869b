"""Build Gemini ``generateContent`` payloads from generic chat messages.

Gemini only knows the ``user``, ``model`` and ``function`` roles and
rejects a ``contents`` list where two neighbouring entries share a role,
so same-role neighbours are merged before transmission.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from gemini_bridge.capabilities import ModelCapabilities
from gemini_bridge.config import (
    SAFETY_CATEGORIES,
    UNLIMITED_THINKING_BUDGET,
    ModelConfig,
    ProviderSettings,
)
from gemini_bridge.errors import InvalidImageError
from gemini_bridge.types import ChatMessage, Role, ToolCall, ToolResult

_logger = logging.getLogger(__name__)

_ROLE_MAP = {
    Role.ASSISTANT.value: "model",
    Role.SYSTEM.value: "user",
    Role.USER.value: "user",
    Role.FUNCTION.value: "function",
    Role.TOOL.value: "function",
}


def map_role(role: str) -> str:
    """Map a generic role onto Gemini's role vocabulary."""
    return _ROLE_MAP.get(role, "user")


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def parse_data_uri(uri: str, strict: bool = False) -> list[dict[str, Any]]:
    """Turn ``data:<mime>;base64,<payload>`` into an ``inline_data`` part.

    Returns an empty list for malformed input, or raises
    ``InvalidImageError`` when *strict* is set.
    """
    header, sep, data = uri.partition(",")
    mime_type = ""
    if header.startswith("data:"):
        mime_type = header[len("data:"):].split(";")[0]
    if not sep or not mime_type or not data:
        if strict:
            raise InvalidImageError(f"Not a base64 data URI: {uri[:48]!r}")
        _logger.warning("Skipping malformed image data URI: %.48s", uri)
        return []
    return [{"inline_data": {"mime_type": mime_type, "data": data}}]


# ---------------------------------------------------------------------------
# Contents
# ---------------------------------------------------------------------------

def message_to_content(
    message: ChatMessage,
    vision: bool,
    strict_images: bool = False,
) -> dict[str, Any]:
    parts: list[dict[str, Any]] = [{"text": message.text_content()}]
    if vision:
        for image in message.images():
            parts.extend(parse_data_uri(image, strict=strict_images))
    return {"role": map_role(message.role), "parts": parts}


def merge_adjacent_roles(contents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Concatenate the parts of neighbouring same-role entries."""
    merged: list[dict[str, Any]] = []
    for entry in contents:
        if merged and merged[-1]["role"] == entry["role"]:
            merged[-1]["parts"] = merged[-1]["parts"] + entry["parts"]
        else:
            merged.append({"role": entry["role"], "parts": list(entry["parts"])})
    return merged


def safety_settings(threshold: str) -> list[dict[str, str]]:
    return [
        {"category": category, "threshold": threshold}
        for category in SAFETY_CATEGORIES
    ]


def build_request(
    messages: Sequence[ChatMessage],
    model_config: ModelConfig,
    settings: ProviderSettings,
    capabilities: ModelCapabilities,
    function_declarations: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build the Gemini request payload for one chat invocation.

    Parameters
    ----------
    messages:
        Conversation history, oldest first.
    model_config:
        Generation parameters for this call.
    settings:
        Provider settings (safety threshold, strict image handling).
    capabilities:
        Capability flags of ``model_config.model``; vision gates image
        parts, reasoning adds ``thinkingConfig``.
    function_declarations:
        Optional tool declarations, sent as a single ``tools`` entry.
    """
    contents = [
        message_to_content(m, capabilities.vision, settings.strict_images)
        for m in messages
    ]
    payload: dict[str, Any] = {
        "contents": merge_adjacent_roles(contents),
        "generationConfig": {
            "temperature": model_config.temperature,
            "maxOutputTokens": model_config.max_tokens,
            "topP": model_config.top_p,
        },
    }

    if capabilities.reasoning:
        budget = model_config.thinking_budget
        payload["thinkingConfig"] = {
            "thinkingBudget": (
                UNLIMITED_THINKING_BUDGET if budget is None else budget
            ),
            "includeThoughts": True,
        }

    payload["safetySettings"] = safety_settings(settings.safety_threshold)

    if function_declarations:
        payload["tools"] = [{"functionDeclarations": function_declarations}]

    return payload


# ---------------------------------------------------------------------------
# Tool round-trip
# ---------------------------------------------------------------------------

def _decode_arguments(raw: str) -> Any:
    try:
        return json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        _logger.warning("Tool call arguments are not JSON: %.80s", raw)
        return {}


def append_tool_turns(
    payload: dict[str, Any],
    results: Sequence[tuple[ToolCall, ToolResult]],
) -> dict[str, Any]:
    """Append the model's function calls and their results to *payload*.

    Adds one ``model`` turn carrying a ``functionCall`` part per call,
    followed by one ``function`` turn per call.  Mutates and returns
    *payload*.
    """
    contents: list[dict[str, Any]] = payload.setdefault("contents", [])
    contents.append({
        "role": "model",
        "parts": [
            {
                "functionCall": {
                    "name": call.name,
                    "args": _decode_arguments(call.arguments),
                },
            }
            for call, _ in results
        ],
    })
    for call, result in results:
        contents.append({
            "role": "function",
            "parts": [
                {
                    "functionResponse": {
                        "name": call.name,
                        "response": {
                            "name": call.name,
                            "content": result.to_message(),
                        },
                    },
                },
            ],
        })
    return payload
