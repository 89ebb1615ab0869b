"""Async HTTP transport for the Gemini REST API.

Uses ``httpx.AsyncClient`` and exposes ``generate()`` (one JSON answer) and
``stream()`` (server-sent ``data:`` payloads).  Every await is guarded by
the invocation's ``CancellationToken``.  Nothing is retried: failures are
terminal for the invocation.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncGenerator, AsyncIterator

import httpx

from gemini_bridge.config import ProviderSettings
from gemini_bridge.core.cancellation import CancellationToken
from gemini_bridge.errors import ProviderHTTPError, TransportError

_logger = logging.getLogger(__name__)

_SSE_PREFIX = "data:"
_SSE_DONE = "[DONE]"

_END = object()


def build_headers(settings: ProviderSettings) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if settings.api_key:
        headers["x-goog-api-key"] = settings.api_key
    headers.update(settings.extra_headers)
    return headers


def _error_message(status_code: int, body: str) -> str:
    """Human-readable message for a non-2xx answer."""
    if status_code == 401:
        return "Unauthorized: check the Gemini API key"
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        data = None
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return f"Gemini API error {status_code}: {error['message']}"
    return f"Gemini API error {status_code}: {body[:500]}"


async def _next_line(lines: AsyncIterator[str]) -> Any:
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return _END


class GeminiClient:
    """Async client for the Gemini ``generateContent`` endpoints."""

    def __init__(
        self,
        settings: ProviderSettings,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 300,
    ) -> None:
        self.settings = settings
        self._headers = build_headers(settings)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=30),
        )

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def generate(
        self,
        url: str,
        payload: dict[str, Any],
        token: CancellationToken,
    ) -> tuple[Any, httpx.Response]:
        """POST *payload* and return ``(json_body, response)``."""
        start = time.monotonic()
        try:
            resp = await token.guard(
                self._client.post(url, json=payload, headers=self._headers),
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if resp.status_code >= 400:
            raise ProviderHTTPError(
                _error_message(resp.status_code, resp.text),
                status_code=resp.status_code,
                body=resp.text,
            )
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise TransportError(f"Invalid JSON response from {url}") from e

        _logger.debug(
            "Gemini response in %.0f ms", (time.monotonic() - start) * 1000,
        )
        return data, resp

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(
        self,
        url: str,
        payload: dict[str, Any],
        token: CancellationToken,
    ) -> AsyncGenerator[str, None]:
        """Yield the raw ``data:`` payload of each server-sent event."""
        request = self._client.build_request(
            "POST", url, json=payload, headers=self._headers,
        )
        try:
            resp = await token.guard(self._client.send(request, stream=True))
        except httpx.HTTPError as e:
            raise TransportError(f"Stream request to {url} failed: {e}") from e

        try:
            if resp.status_code >= 400:
                body = (await token.guard(resp.aread())).decode(errors="replace")
                raise ProviderHTTPError(
                    _error_message(resp.status_code, body),
                    status_code=resp.status_code,
                    body=body,
                )

            lines = resp.aiter_lines()
            while True:
                line = await token.guard(_next_line(lines))
                if line is _END:
                    break
                if not line.startswith(_SSE_PREFIX):
                    continue
                data = line[len(_SSE_PREFIX):].strip()
                if not data:
                    continue
                if data == _SSE_DONE:
                    break
                yield data
        except httpx.HTTPError as e:
            raise TransportError(f"Stream from {url} interrupted: {e}") from e
        finally:
            await resp.aclose()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
