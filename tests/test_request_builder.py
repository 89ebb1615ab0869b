"""Tests for Gemini request payload construction."""

from __future__ import annotations

import pytest

from gemini_bridge.capabilities import ModelCapabilities
from gemini_bridge.config import ModelConfig, ProviderSettings
from gemini_bridge.errors import InvalidImageError
from gemini_bridge.llm.request_builder import (
    append_tool_turns,
    build_request,
    map_role,
    merge_adjacent_roles,
    message_to_content,
    parse_data_uri,
)
from gemini_bridge.types import ChatMessage, ToolCall, ToolResult

PNG_URI = "data:image/png;base64,iVBORw0KGgo="


def _image_message(text: str = "what is this?", url: str = PNG_URI) -> ChatMessage:
    return ChatMessage(role="user", content=[
        {"type": "text", "text": text},
        {"type": "image_url", "image_url": {"url": url}},
    ])


@pytest.fixture
def settings() -> ProviderSettings:
    return ProviderSettings()


class TestRoles:
    def test_role_mapping(self):
        assert map_role("assistant") == "model"
        assert map_role("system") == "user"
        assert map_role("user") == "user"
        assert map_role("tool") == "function"

    def test_unknown_role_falls_back_to_user(self):
        assert map_role("narrator") == "user"


class TestMergeAdjacentRoles:
    def test_system_and_user_merge(self, settings):
        payload = build_request(
            [
                ChatMessage(role="system", content="Be brief."),
                ChatMessage(role="user", content="Hi"),
                ChatMessage(role="assistant", content="Hello"),
            ],
            ModelConfig(),
            settings,
            ModelCapabilities(),
        )
        assert payload["contents"] == [
            {"role": "user", "parts": [{"text": "Be brief."}, {"text": "Hi"}]},
            {"role": "model", "parts": [{"text": "Hello"}]},
        ]

    def test_no_two_neighbours_share_a_role(self):
        contents = [
            {"role": "user", "parts": [{"text": "a"}]},
            {"role": "user", "parts": [{"text": "b"}]},
            {"role": "model", "parts": [{"text": "c"}]},
            {"role": "model", "parts": [{"text": "d"}]},
            {"role": "user", "parts": [{"text": "e"}]},
        ]
        merged = merge_adjacent_roles(contents)
        roles = [c["role"] for c in merged]
        assert roles == ["user", "model", "user"]
        assert all(a != b for a, b in zip(roles, roles[1:]))
        assert [p["text"] for p in merged[0]["parts"]] == ["a", "b"]

    def test_parts_order_preserved_and_input_untouched(self):
        first = {"role": "user", "parts": [{"text": "1"}]}
        second = {"role": "user", "parts": [{"text": "2"}]}
        merged = merge_adjacent_roles([first, second])
        assert merged[0]["parts"] == [{"text": "1"}, {"text": "2"}]
        assert first["parts"] == [{"text": "1"}]

    def test_empty(self):
        assert merge_adjacent_roles([]) == []


class TestImages:
    def test_parse_data_uri(self):
        assert parse_data_uri(PNG_URI) == [
            {"inline_data": {"mime_type": "image/png", "data": "iVBORw0KGgo="}},
        ]

    def test_malformed_uri_skipped(self, caplog):
        assert parse_data_uri("https://example.com/cat.png") == []
        assert "malformed image" in caplog.text

    def test_malformed_uri_strict(self):
        with pytest.raises(InvalidImageError):
            parse_data_uri("data:image/png;base64", strict=True)

    def test_vision_model_gets_inline_data(self):
        content = message_to_content(_image_message(), vision=True)
        assert content["parts"][0] == {"text": "what is this?"}
        assert content["parts"][1]["inline_data"]["mime_type"] == "image/png"

    def test_non_vision_model_drops_images(self):
        content = message_to_content(_image_message(), vision=False)
        assert content["parts"] == [{"text": "what is this?"}]

    def test_strict_setting_propagates(self):
        with pytest.raises(InvalidImageError):
            build_request(
                [_image_message(url="not-a-data-uri")],
                ModelConfig(),
                ProviderSettings(strict_images=True),
                ModelCapabilities(vision=True),
            )


class TestBuildRequest:
    def test_generation_config(self, settings):
        config = ModelConfig(temperature=0.2, max_tokens=128, top_p=0.9)
        payload = build_request(
            [ChatMessage(role="user", content="Hi")], config, settings, ModelCapabilities(),
        )
        assert payload["generationConfig"] == {
            "temperature": 0.2,
            "maxOutputTokens": 128,
            "topP": 0.9,
        }
        assert "thinkingConfig" not in payload
        assert "tools" not in payload

    def test_safety_settings(self, settings):
        payload = build_request(
            [ChatMessage(role="user", content="Hi")],
            ModelConfig(),
            settings,
            ModelCapabilities(),
        )
        assert len(payload["safetySettings"]) == 4
        assert {s["threshold"] for s in payload["safetySettings"]} == {"BLOCK_ONLY_HIGH"}
        assert "HARM_CATEGORY_DANGEROUS_CONTENT" in {
            s["category"] for s in payload["safetySettings"]
        }

    def test_custom_safety_threshold(self):
        payload = build_request(
            [ChatMessage(role="user", content="Hi")],
            ModelConfig(),
            ProviderSettings(safety_threshold="BLOCK_NONE"),
            ModelCapabilities(),
        )
        assert {s["threshold"] for s in payload["safetySettings"]} == {"BLOCK_NONE"}

    def test_reasoning_model_unlimited_thinking(self, settings):
        payload = build_request(
            [ChatMessage(role="user", content="Hi")],
            ModelConfig(),
            settings,
            ModelCapabilities(reasoning=True),
        )
        assert payload["thinkingConfig"] == {
            "thinkingBudget": -1,
            "includeThoughts": True,
        }

    def test_explicit_thinking_budget(self, settings):
        payload = build_request(
            [ChatMessage(role="user", content="Hi")],
            ModelConfig(thinking_budget=1024),
            settings,
            ModelCapabilities(reasoning=True),
        )
        assert payload["thinkingConfig"]["thinkingBudget"] == 1024

    def test_function_declarations(self, settings):
        decl = {"name": "lookup", "description": "Look something up"}
        payload = build_request(
            [ChatMessage(role="user", content="Hi")],
            ModelConfig(),
            settings,
            ModelCapabilities(),
            function_declarations=[decl],
        )
        assert payload["tools"] == [{"functionDeclarations": [decl]}]


class TestAppendToolTurns:
    def test_single_call_adds_two_turns(self):
        payload = {"contents": [{"role": "user", "parts": [{"text": "weather?"}]}]}
        call = ToolCall(name="weather", arguments='{"city": "Oslo"}')
        append_tool_turns(payload, [(call, ToolResult(success=True, output="4C"))])

        assert len(payload["contents"]) == 3
        model_turn, function_turn = payload["contents"][1:]
        assert model_turn == {
            "role": "model",
            "parts": [{"functionCall": {"name": "weather", "args": {"city": "Oslo"}}}],
        }
        assert function_turn == {
            "role": "function",
            "parts": [{
                "functionResponse": {
                    "name": "weather",
                    "response": {"name": "weather", "content": "4C"},
                },
            }],
        }

    def test_multiple_calls_share_one_model_turn(self):
        payload = {"contents": []}
        results = [
            (ToolCall(name="a"), ToolResult(success=True, output="A")),
            (ToolCall(name="b"), ToolResult(success=False, output="", error="boom")),
        ]
        append_tool_turns(payload, results)

        roles = [c["role"] for c in payload["contents"]]
        assert roles == ["model", "function", "function"]
        assert len(payload["contents"][0]["parts"]) == 2
        failed = payload["contents"][2]["parts"][0]["functionResponse"]["response"]
        assert failed["content"] == "[Tool Error] boom"

    def test_unparseable_arguments_become_empty_args(self):
        payload = {"contents": []}
        call = ToolCall(name="a", arguments="not json")
        append_tool_turns(payload, [(call, ToolResult(success=True, output=""))])
        assert payload["contents"][0]["parts"][0]["functionCall"]["args"] == {}
