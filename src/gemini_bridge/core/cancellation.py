"""Cooperative cancellation for a single chat invocation.

A ``CancellationToken`` is handed to the caller (``on_controller``) and
observed at every suspension point of the chat core: awaiting response
headers, awaiting each streamed event and awaiting tool execution.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, TypeVar

from gemini_bridge.errors import RequestCancelledError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

TIMEOUT_REASON = "timeout"


class CancellationToken:
    """One-shot abort signal with an optional deadline.

    Usage::

        token = CancellationToken()
        token.cancel_after(60)
        data = await token.guard(client.post(...))
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def timed_out(self) -> bool:
        return self._reason == TIMEOUT_REASON

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation.  Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        self.clear_timeout()
        _logger.debug("Cancellation requested: %s", reason)

    def cancel_after(self, seconds: float) -> None:
        """Arm a deadline that cancels with reason ``"timeout"``."""
        self.clear_timeout()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(seconds, self.cancel, TIMEOUT_REASON)

    def clear_timeout(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError(self._reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token fires first.

        On cancellation the pending work is cancelled and
        ``RequestCancelledError`` is raised.  *awaitable* may be a plain
        future such as the result of ``asyncio.gather``; it runs inside its
        own task so that cancelling it always leaves a cancelled task.
        """
        if self._event.is_set():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            elif isinstance(awaitable, asyncio.Future):
                awaitable.cancel()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(_await(awaitable))
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task.cancelled():
            raise RequestCancelledError(self._reason or "cancelled")
        return task.result()


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable
