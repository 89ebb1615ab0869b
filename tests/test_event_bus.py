"""Tests for the EventBus."""

from __future__ import annotations

import pytest

from gemini_bridge.events.bus import EventBus
from gemini_bridge.types import ChatEvent, EventType


@pytest.mark.asyncio
async def test_subscribe_and_emit():
    bus = EventBus()
    received: list[ChatEvent] = []
    bus.subscribe(EventType.CHAT_CHUNK, received.append)

    await bus.emit(ChatEvent(type=EventType.CHAT_CHUNK, data={"text": "hi"}))
    await bus.emit(ChatEvent(type=EventType.CHAT_DONE))

    assert len(received) == 1
    assert received[0].data["text"] == "hi"


@pytest.mark.asyncio
async def test_wildcard_and_async_handler():
    bus = EventBus()
    received: list[EventType] = []

    async def handler(event: ChatEvent) -> None:
        received.append(event.type)

    bus.subscribe("*", handler)
    await bus.emit(ChatEvent(type=EventType.CHAT_STARTED))
    await bus.emit(ChatEvent(type=EventType.TOOL_EXECUTED))

    assert received == [EventType.CHAT_STARTED, EventType.TOOL_EXECUTED]


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    received: list[ChatEvent] = []
    bus.subscribe(EventType.CHAT_DONE, received.append)
    bus.unsubscribe(EventType.CHAT_DONE, received.append)

    await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
    assert received == []


@pytest.mark.asyncio
async def test_handler_error_is_contained():
    bus = EventBus()
    received: list[ChatEvent] = []

    def broken(event: ChatEvent) -> None:
        raise RuntimeError("handler bug")

    bus.subscribe(EventType.CHAT_ERROR, broken)
    bus.subscribe(EventType.CHAT_ERROR, received.append)

    await bus.emit(ChatEvent(type=EventType.CHAT_ERROR))
    assert len(received) == 1


@pytest.mark.asyncio
async def test_history_bounded():
    bus = EventBus(max_history=3)
    for _ in range(5):
        await bus.emit(ChatEvent(type=EventType.CHAT_CHUNK))
    assert len(bus.history) == 3

    bus.clear()
    assert bus.history == []


@pytest.mark.asyncio
async def test_pattern_subscription():
    bus = EventBus()
    received: list[EventType] = []
    bus.subscribe("tool.*", lambda e: received.append(e.type))

    await bus.emit(ChatEvent(type=EventType.TOOL_EXECUTING))
    await bus.emit(ChatEvent(type=EventType.CHAT_CHUNK))
    await bus.emit(ChatEvent(type=EventType.TOOL_ERROR))

    assert received == [EventType.TOOL_EXECUTING, EventType.TOOL_ERROR]


@pytest.mark.asyncio
async def test_subscribe_returns_remover():
    bus = EventBus()
    received: list[ChatEvent] = []
    remove = bus.subscribe(EventType.CHAT_DONE, received.append)
    remove()
    remove()

    await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
    assert received == []
    assert len(bus.events(EventType.CHAT_DONE)) == 1
