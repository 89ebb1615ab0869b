"""Endpoint resolution for the Gemini REST API."""

from __future__ import annotations

import logging

from gemini_bridge.config import GEMINI_BASE_URL, GOOGLE_API_PATH, ProviderSettings

_logger = logging.getLogger(__name__)


def chat_path(model: str) -> str:
    """Logical path of the chat endpoint for *model*."""
    return f"v1beta/models/{model}:streamGenerateContent"


def resolve_base_url(settings: ProviderSettings) -> str:
    """Custom base URL > build default (app: public API, hosted: proxy path)."""
    base_url = ""
    if settings.use_custom_config:
        base_url = settings.base_url
    if not base_url:
        base_url = GEMINI_BASE_URL if settings.is_app else GOOGLE_API_PATH
    return base_url


def join_url(base_url: str, path: str, stream: bool = False) -> str:
    """Join *base_url* and *path*, appending ``alt=sse`` when streaming.

    >>> join_url("example.com/", "v1/chat", stream=True)
    'https://example.com/v1/chat?alt=sse'
    """
    if base_url.endswith("/"):
        base_url = base_url[:-1]
    if not base_url.startswith("http") and not base_url.startswith(GOOGLE_API_PATH):
        base_url = "https://" + base_url

    url = "/".join([base_url, path])
    if stream:
        url += "&alt=sse" if "?" in url else "?alt=sse"
    return url


def resolve_url(path: str, stream: bool, settings: ProviderSettings) -> str:
    url = join_url(resolve_base_url(settings), path, stream)
    _logger.debug("Resolved %s (stream=%s) -> %s", path, stream, url)
    return url
