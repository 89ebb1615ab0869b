"""Model capability lookup and per-model timeouts.

The chat core only reads capabilities; it never infers them itself.  The
default implementation matches model ids against configured glob patterns.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from typing import Protocol

from gemini_bridge.config import CapabilitySettings, TimeoutSettings

_logger = logging.getLogger(__name__)

# Model ids that mark slow, reasoning-heavy models
_THINKING_PREFIXES = ("o1", "o3", "dall-e", "dalle")
_THINKING_MARKERS = ("-thinking", "pro", "deepseek-r")


@dataclass(frozen=True)
class ModelCapabilities:
    vision: bool = False
    reasoning: bool = False


class CapabilityLookup(Protocol):
    """Answers what a model can do."""

    def capabilities(self, model: str) -> ModelCapabilities:
        ...


class ConfiguredCapabilities:
    """Pattern-based lookup driven by ``CapabilitySettings``."""

    def __init__(self, settings: CapabilitySettings | None = None) -> None:
        self._settings = settings or CapabilitySettings()

    def capabilities(self, model: str) -> ModelCapabilities:
        name = model.lower()
        vision = _matches(name, self._settings.vision_models)
        reasoning = _matches(name, self._settings.reasoning_models)
        override = self._settings.overrides.get(model, {})
        caps = ModelCapabilities(
            vision=override.get("vision", vision),
            reasoning=override.get("reasoning", reasoning),
        )
        _logger.debug("Capabilities for %s: %s", model, caps)
        return caps


def _matches(name: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(name, p.lower()) for p in patterns)


def timeout_for_model(model: str, settings: TimeoutSettings | None = None) -> float:
    """Return the abort timeout in seconds for *model*."""
    settings = settings or TimeoutSettings()
    name = model.lower()
    if name.startswith(_THINKING_PREFIXES) or any(
        marker in name for marker in _THINKING_MARKERS
    ):
        return settings.thinking_timeout
    return settings.request_timeout
