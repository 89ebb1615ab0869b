"""Tests for Gemini endpoint resolution."""

from __future__ import annotations

from gemini_bridge.config import ProviderSettings
from gemini_bridge.llm.endpoint import chat_path, join_url, resolve_base_url, resolve_url


class TestJoinUrl:
    def test_scheme_added_and_sse_appended(self):
        assert (
            join_url("example.com/", "v1/chat", stream=True)
            == "https://example.com/v1/chat?alt=sse"
        )

    def test_existing_query_uses_ampersand(self):
        url = join_url("https://example.com", "v1/chat?key=abc", stream=True)
        assert url == "https://example.com/v1/chat?key=abc&alt=sse"

    def test_no_stream_no_query(self):
        assert join_url("http://localhost:8080", "v1/x") == "http://localhost:8080/v1/x"

    def test_relative_proxy_path_kept(self):
        assert join_url("/api/google", "v1beta/models/m:streamGenerateContent") == (
            "/api/google/v1beta/models/m:streamGenerateContent"
        )


class TestResolveBaseUrl:
    def test_hosted_build_uses_proxy_path(self):
        assert resolve_base_url(ProviderSettings()) == "/api/google"

    def test_app_build_uses_public_api(self):
        assert resolve_base_url(ProviderSettings(is_app=True)) == (
            "https://generativelanguage.googleapis.com/"
        )

    def test_custom_url_wins(self):
        settings = ProviderSettings(
            use_custom_config=True, base_url="https://proxy.local", is_app=True,
        )
        assert resolve_base_url(settings) == "https://proxy.local"

    def test_custom_url_ignored_when_disabled(self):
        settings = ProviderSettings(base_url="https://proxy.local")
        assert resolve_base_url(settings) == "/api/google"

    def test_empty_custom_url_falls_back(self):
        settings = ProviderSettings(use_custom_config=True, is_app=True)
        assert resolve_base_url(settings).startswith("https://generativelanguage")


def test_chat_path():
    assert chat_path("gemini-2.5-flash") == (
        "v1beta/models/gemini-2.5-flash:streamGenerateContent"
    )


def test_resolve_url_full():
    url = resolve_url(chat_path("gemini-pro"), True, ProviderSettings(is_app=True))
    assert url == (
        "https://generativelanguage.googleapis.com/"
        "v1beta/models/gemini-pro:streamGenerateContent?alt=sse"
    )
