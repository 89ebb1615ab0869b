"""Error types raised by gemini-bridge.

Every failure is terminal for the current chat invocation and reaches the
caller through ``ChatOptions.on_error``.  Nothing here is retried.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all gemini-bridge errors."""


class TransportError(BridgeError):
    """Network-level failure while talking to the provider."""


class ProviderHTTPError(TransportError):
    """The provider answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ChunkDecodeError(BridgeError):
    """A streamed event payload was not valid JSON."""

    def __init__(self, message: str, payload: str = "") -> None:
        super().__init__(message)
        self.payload = payload


class ContentBlockedError(BridgeError):
    """The prompt was blocked by the provider's safety filter."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Message is being blocked for reason: {reason}")
        self.reason = reason


class RequestCancelledError(BridgeError):
    """The invocation was aborted through its cancellation token."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(reason)
        self.reason = reason


class RequestTimeoutError(TransportError):
    """No terminal event arrived within the per-model timeout."""


class InvalidImageError(BridgeError):
    """An attached image is not a ``data:<mime>;base64,<payload>`` URI."""


class ToolLoopLimitError(BridgeError):
    """The model kept requesting tools past ``max_tool_rounds``."""
