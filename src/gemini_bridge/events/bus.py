"""Async pub/sub bus for observing chat invocations.

Subscriptions match event names (``EventType.value``, e.g. ``"chat.chunk"``)
with shell-style patterns, so ``"tool.*"`` follows every tool event and
``"*"`` follows everything.
"""

from __future__ import annotations

import asyncio
import fnmatch
import inspect
import logging
from collections import deque
from typing import Any, Callable

from gemini_bridge.types import ChatEvent, EventType

_logger = logging.getLogger(__name__)

Handler = Callable[[ChatEvent], Any]


class EventBus:
    """Fans ``ChatEvent``s out to sync or async handlers.

    Handlers run concurrently per event.  A handler that raises is logged
    and skipped; the chat core never sees the exception.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._subscriptions: list[tuple[str, Handler]] = []
        self._history: deque[ChatEvent] = deque(maxlen=max_history)

    def subscribe(self, pattern: EventType | str, handler: Handler) -> Callable[[], None]:
        """Call *handler* for events whose name matches *pattern*.

        Returns a function that removes the subscription.
        """
        entry = (_pattern(pattern), handler)
        self._subscriptions.append(entry)

        def _remove() -> None:
            if entry in self._subscriptions:
                self._subscriptions.remove(entry)

        return _remove

    def unsubscribe(self, pattern: EventType | str, handler: Handler) -> None:
        entry = (_pattern(pattern), handler)
        if entry in self._subscriptions:
            self._subscriptions.remove(entry)

    async def emit(self, event: ChatEvent) -> None:
        self._history.append(event)
        name = event.type.value
        handlers = [h for p, h in self._subscriptions if fnmatch.fnmatchcase(name, p)]
        if handlers:
            await asyncio.gather(*(_dispatch(h, event) for h in handlers))

    @property
    def history(self) -> list[ChatEvent]:
        """Events emitted so far, oldest first."""
        return list(self._history)

    def events(self, event_type: EventType) -> list[ChatEvent]:
        return [e for e in self._history if e.type is event_type]

    def clear(self) -> None:
        self._subscriptions.clear()
        self._history.clear()


def _pattern(value: EventType | str) -> str:
    return value.value if isinstance(value, EventType) else str(value)


async def _dispatch(handler: Handler, event: ChatEvent) -> None:
    try:
        result = handler(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        _logger.exception(
            "Event handler %s failed on %s",
            getattr(handler, "__name__", repr(handler)),
            event.type.value,
        )
