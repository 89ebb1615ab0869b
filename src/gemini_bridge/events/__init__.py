"""Event bus for gemini-bridge."""

from gemini_bridge.events.bus import EventBus

__all__ = ["EventBus"]
