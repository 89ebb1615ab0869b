"""Tests for CancellationToken."""

from __future__ import annotations

import asyncio

import pytest

from gemini_bridge.core.cancellation import CancellationToken
from gemini_bridge.errors import RequestCancelledError


class TestCancel:
    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        assert token.reason is None
        token.raise_if_cancelled()

    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("user")
        token.cancel("timeout")
        assert token.cancelled
        assert token.reason == "user"
        assert not token.timed_out

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RequestCancelledError):
            token.raise_if_cancelled()


class TestTimeout:
    async def test_cancel_after_fires(self):
        token = CancellationToken()
        token.cancel_after(0.01)
        await asyncio.wait_for(token.wait(), timeout=1)
        assert token.timed_out

    async def test_clear_timeout(self):
        token = CancellationToken()
        token.cancel_after(0.01)
        token.clear_timeout()
        await asyncio.sleep(0.05)
        assert not token.cancelled

    async def test_manual_cancel_disarms_timer(self):
        token = CancellationToken()
        token.cancel_after(0.01)
        token.cancel("user")
        await asyncio.sleep(0.05)
        assert token.reason == "user"


class TestGuard:
    async def test_returns_result(self):
        async def work():
            return 42

        assert await CancellationToken().guard(work()) == 42

    async def test_propagates_exception(self):
        async def work():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await CancellationToken().guard(work())

    async def test_cancel_interrupts_pending_work(self):
        token = CancellationToken()
        finished = False

        async def slow():
            nonlocal finished
            await asyncio.sleep(5)
            finished = True

        asyncio.get_running_loop().call_later(0.01, token.cancel, "user")
        with pytest.raises(RequestCancelledError) as exc_info:
            await token.guard(slow())
        assert exc_info.value.reason == "user"
        assert not finished

    async def test_already_cancelled(self):
        token = CancellationToken()
        token.cancel()

        async def work():
            return 1

        coro = work()
        with pytest.raises(RequestCancelledError):
            await token.guard(coro)
        coro.close()

    async def test_cancel_interrupts_gathered_future(self):
        token = CancellationToken()
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(5)

        async def trip():
            await started.wait()
            token.cancel("timeout")

        asyncio.ensure_future(trip())
        with pytest.raises(RequestCancelledError) as exc_info:
            await token.guard(asyncio.gather(slow(), slow()))
        assert exc_info.value.reason == "timeout"

    async def test_already_cancelled_future_is_cancelled(self):
        token = CancellationToken()
        token.cancel()
        pending = asyncio.get_running_loop().create_future()

        with pytest.raises(RequestCancelledError):
            await token.guard(pending)
        assert pending.cancelled()
