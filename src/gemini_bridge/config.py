"""Configuration management for gemini-bridge."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/"
GOOGLE_API_PATH = "/api/google"

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

# Sentinel budget meaning "let the model decide"
UNLIMITED_THINKING_BUDGET = -1


class ProviderSettings(BaseModel):
    use_custom_config: bool = False
    base_url: str = ""
    api_key: str = ""
    is_app: bool = False  # desktop build talks to Gemini directly
    safety_threshold: str = "BLOCK_ONLY_HIGH"
    extra_headers: dict[str, str] = Field(default_factory=dict)
    strict_images: bool = False  # raise on malformed data URIs instead of skipping


class CapabilitySettings(BaseModel):
    vision_models: list[str] = Field(
        default_factory=lambda: ["gemini-*", "*vision*", "learnlm*"]
    )
    reasoning_models: list[str] = Field(
        default_factory=lambda: ["gemini-2.5*", "*-thinking*"]
    )
    # Explicit per-model overrides: {"my-model": {"vision": false, "reasoning": true}}
    overrides: dict[str, dict[str, bool]] = Field(default_factory=dict)


class TimeoutSettings(BaseModel):
    request_timeout: float = 60.0
    thinking_timeout: float = 300.0


class ModelConfig(BaseModel):
    model: str = "gemini-2.5-flash"
    temperature: float = 0.5
    max_tokens: int = 4000
    top_p: float = 1.0
    stream: bool = True
    thinking_budget: int | None = None
    provider_name: str = "Google"


class BridgeConfig(BaseModel):
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    capabilities: CapabilitySettings = Field(default_factory=CapabilitySettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    model: ModelConfig = Field(default_factory=ModelConfig)
    max_tool_rounds: int = 10


CONFIG_FILENAME = "gemini_bridge.yaml"

_API_KEY_ENV = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


def _apply_env(config: BridgeConfig) -> BridgeConfig:
    if not config.provider.api_key:
        for name in _API_KEY_ENV:
            value = os.environ.get(name)
            if value:
                config.provider.api_key = value
                break
    return config


def load_config(
    config_path: str | Path | None = None,
) -> tuple[BridgeConfig, Path | None]:
    """Load configuration from YAML file.

    Returns (config, resolved_path).  *resolved_path* is ``None`` when
    no file was found and built-in defaults are used.

    Search order (first match wins):
      1. Explicit ``--config`` path
      2. Current working directory: ``./gemini_bridge.yaml``
      3. User config dir: ``~/.gemini_bridge/gemini_bridge.yaml``

    An empty ``provider.api_key`` is filled from ``GEMINI_API_KEY`` or
    ``GOOGLE_API_KEY``.
    """
    if config_path is None:
        for d in (Path.cwd(), Path.home() / ".gemini_bridge"):
            p = d / CONFIG_FILENAME
            if p.exists():
                config_path = p
                break

    resolved: Path | None = Path(config_path) if config_path else None
    if resolved and resolved.exists():
        with open(resolved) as f:
            raw: dict[str, Any] = yaml.safe_load(f) or {}
        config = BridgeConfig.model_validate(raw)
        return _apply_env(config), resolved.resolve()

    if config_path is not None:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return _apply_env(BridgeConfig()), None
