"""Normalization of Gemini responses and streamed chunks.

Gemini responses are deeply nested optional structures, so every accessor
here checks for absence instead of assuming shape.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from gemini_bridge.errors import ChunkDecodeError
from gemini_bridge.types import ChunkKind, StreamChunk, ToolCall

_logger = logging.getLogger(__name__)

_PART_SEPARATOR = "\n\n"


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------

def first_candidate(res: Any) -> dict[str, Any]:
    if not isinstance(res, dict):
        return {}
    candidates = res.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return {}
    candidate = candidates[0]
    return candidate if isinstance(candidate, dict) else {}


def candidate_parts(res: Any) -> list[dict[str, Any]]:
    content = first_candidate(res).get("content")
    if not isinstance(content, dict):
        return []
    parts = content.get("parts")
    if not isinstance(parts, list):
        return []
    return [p for p in parts if isinstance(p, dict)]


def text_from_parts(parts: list[dict[str, Any]]) -> str:
    """Join non-blank text parts with a blank line."""
    texts = [p.get("text") or "" for p in parts]
    return _PART_SEPARATOR.join(t for t in texts if t.strip())


# ---------------------------------------------------------------------------
# Non-streaming
# ---------------------------------------------------------------------------

def extract_message(res: Any) -> str:
    """Best-effort text answer from a response body.

    Accepts a single response object or a list of them (the
    ``streamGenerateContent`` endpoint answers with a JSON array when
    ``alt=sse`` is absent).  Never raises.
    """
    collected = ""
    if isinstance(res, list):
        for item in res:
            collected += text_from_parts(candidate_parts(item))

    text = text_from_parts(candidate_parts(res))
    if text:
        return text
    if collected:
        return collected
    if isinstance(res, dict):
        error = res.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return ""


def block_reason(res: Any) -> str | None:
    """Return ``promptFeedback.blockReason`` if the prompt was blocked."""
    items = res if isinstance(res, list) else [res]
    for item in items:
        if not isinstance(item, dict):
            continue
        feedback = item.get("promptFeedback")
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            return str(feedback["blockReason"])
    return None


def extract_usage(res: Any) -> dict[str, int]:
    """Map ``usageMetadata`` to prompt/completion/total token counts."""
    items = res if isinstance(res, list) else [res]
    usage: dict[str, int] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        meta = item.get("usageMetadata")
        if not isinstance(meta, dict):
            continue
        if "promptTokenCount" in meta:
            usage["prompt_tokens"] = meta["promptTokenCount"]
        if "candidatesTokenCount" in meta:
            usage["completion_tokens"] = meta["candidatesTokenCount"]
        if "totalTokenCount" in meta:
            usage["total_tokens"] = meta["totalTokenCount"]
    return usage


def finish_reason(res: Any) -> str:
    return str(first_candidate(res).get("finishReason") or "")


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

def parse_payload(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ChunkDecodeError(f"Malformed stream chunk: {e}", payload=raw) from e


def decode_chunk(data: Any) -> list[StreamChunk]:
    """Split one decoded SSE payload into stream chunks.

    Order of the result:

    1. one ``TOOL_CALL`` chunk per ``functionCall`` part, each with a fresh
       id and its arguments re-serialized to a JSON string;
    2. a ``THINKING`` chunk with the first thought-flagged text, if any;
    3. a ``CONTENT`` chunk with the remaining text joined by blank lines.

    When a payload carries both thought and regular text the content chunk
    follows the thinking chunk instead of being dropped.  Empty text yields
    no chunk.
    """
    chunks: list[StreamChunk] = []
    text_parts: list[dict[str, Any]] = []

    for part in candidate_parts(data):
        call = part.get("functionCall")
        if isinstance(call, dict):
            chunks.append(StreamChunk(
                kind=ChunkKind.TOOL_CALL,
                tool_call=ToolCall(
                    name=str(call.get("name", "")),
                    arguments=json.dumps(call.get("args") or {}),
                ),
            ))
            continue
        text_parts.append(part)

    thought = next(
        (p.get("text") for p in text_parts if p.get("thought") and p.get("text")),
        "",
    )
    regular = _PART_SEPARATOR.join(
        p.get("text") or "" for p in text_parts if not p.get("thought")
    )

    if thought:
        chunks.append(StreamChunk(kind=ChunkKind.THINKING, text=thought))
    if regular:
        chunks.append(StreamChunk(kind=ChunkKind.CONTENT, text=regular))
    return chunks
