"""Gemini chat API facade.

``GeminiApi.chat()`` is the single entry point used by the conversation
layer: it shapes the request, resolves the endpoint, hands the caller a
cancellation token, arms the per-model timeout and then either streams
through the ``StreamOrchestrator`` or performs one plain request.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from gemini_bridge.capabilities import (
    CapabilityLookup,
    ConfiguredCapabilities,
    timeout_for_model,
)
from gemini_bridge.config import BridgeConfig
from gemini_bridge.core.cancellation import CancellationToken
from gemini_bridge.core.options import ChatOptions, invoke
from gemini_bridge.core.orchestrator import StreamOrchestrator
from gemini_bridge.errors import (
    BridgeError,
    ContentBlockedError,
    RequestCancelledError,
    RequestTimeoutError,
)
from gemini_bridge.events.bus import EventBus
from gemini_bridge.llm.client import GeminiClient
from gemini_bridge.llm.endpoint import chat_path, resolve_url
from gemini_bridge.llm.request_builder import build_request
from gemini_bridge.llm.response_parser import (
    block_reason,
    extract_message,
    extract_usage,
    finish_reason,
)
from gemini_bridge.tools.registry import ToolRegistry
from gemini_bridge.types import ChatEvent, EventType, LLMResponse

_logger = logging.getLogger(__name__)


class GeminiApi:
    """Chat adapter for Google Gemini.

    Parameters
    ----------
    config:
        Configuration snapshot (provider settings, capabilities, timeouts).
    client:
        Optional pre-built ``GeminiClient``; one is created from
        ``config.provider`` otherwise.
    capabilities:
        Capability lookup; defaults to ``ConfiguredCapabilities``.
    registry:
        Tools offered to the model in streaming mode.
    event_bus:
        Optional bus receiving lifecycle events.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        client: GeminiClient | None = None,
        capabilities: CapabilityLookup | None = None,
        registry: ToolRegistry | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self._client = client or GeminiClient(self.config.provider)
        self._capabilities = capabilities or ConfiguredCapabilities(
            self.config.capabilities,
        )
        self._registry = registry or ToolRegistry()
        self._event_bus = event_bus

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def path(self, path: str, stream: bool = False) -> str:
        """Fully-qualified URL for *path*."""
        return resolve_url(path, stream, self.config.provider)

    @staticmethod
    def extract_message(res: Any) -> str:
        return extract_message(res)

    async def chat(self, options: ChatOptions) -> LLMResponse | None:
        """Run one chat invocation, reporting through *options* callbacks.

        Returns the final ``LLMResponse`` as a convenience, or ``None``
        when the invocation was cancelled or failed.
        """
        model_config = options.config
        model = model_config.model
        caps = self._capabilities.capabilities(model)

        declarations = (
            self._registry.function_declarations() if model_config.stream else None
        )
        token = CancellationToken()

        try:
            payload = build_request(
                options.messages,
                model_config,
                self.config.provider,
                caps,
                function_declarations=declarations,
            )
            url = self.path(chat_path(model), model_config.stream)

            await invoke(options.on_controller, token)
            token.cancel_after(timeout_for_model(model, self.config.timeouts))
            await self._emit(EventType.CHAT_STARTED, {
                "model": model,
                "stream": model_config.stream,
                "reasoning": caps.reasoning,
                "vision": caps.vision,
            })

            if model_config.stream:
                orchestrator = StreamOrchestrator(
                    self._client,
                    registry=self._registry,
                    event_bus=self._event_bus,
                    max_tool_rounds=self.config.max_tool_rounds,
                )
                return await orchestrator.run(url, payload, options, token)
            return await self._chat_once(url, payload, options, token)
        except BridgeError as e:
            _logger.warning("Chat request failed: %s", e)
            await invoke(options.on_error, e)
            return None
        finally:
            token.clear_timeout()

    async def close(self) -> None:
        await self._client.close()

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def _chat_once(
        self,
        url: str,
        payload: dict[str, Any],
        options: ChatOptions,
        token: CancellationToken,
    ) -> LLMResponse | None:
        start = time.monotonic()
        try:
            data, _resp = await self._client.generate(url, payload, token)
        except RequestCancelledError:
            if token.timed_out:
                await invoke(options.on_error, RequestTimeoutError("Request timed out"))
            return None
        token.clear_timeout()

        reason = block_reason(data)
        if reason:
            _logger.warning("Prompt blocked: %s", reason)
            await invoke(options.on_error, ContentBlockedError(reason))

        message = extract_message(data)
        response = LLMResponse(
            content=message,
            finish_reason=finish_reason(data[-1] if isinstance(data, list) and data else data),
            usage=extract_usage(data),
            model=options.config.model,
            raw_response=data,
            latency_ms=(time.monotonic() - start) * 1000,
        )
        await self._emit(EventType.CHAT_DONE, {
            "content_length": len(message),
            "rounds": 1,
            "latency_ms": response.latency_ms,
        })
        await invoke(options.on_finish, message, response)
        return response

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus:
            await self._event_bus.emit(ChatEvent(type=event_type, data=data))
