"""Gemini wire format: request shaping, endpoints, transport, parsing."""

from gemini_bridge.llm.client import GeminiClient
from gemini_bridge.llm.endpoint import chat_path, join_url, resolve_url
from gemini_bridge.llm.request_builder import append_tool_turns, build_request
from gemini_bridge.llm.response_parser import decode_chunk, extract_message

__all__ = [
    "GeminiClient",
    "append_tool_turns",
    "build_request",
    "chat_path",
    "decode_chunk",
    "extract_message",
    "join_url",
    "resolve_url",
]
