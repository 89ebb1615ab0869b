"""Command-line entry point: send one prompt to Gemini and stream the answer."""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel

from gemini_bridge.api import GeminiApi
from gemini_bridge.config import BridgeConfig, load_config
from gemini_bridge.core.options import ChatOptions
from gemini_bridge.errors import BridgeError
from gemini_bridge.events.bus import EventBus
from gemini_bridge.tools.registry import ToolRegistry
from gemini_bridge.types import ChatMessage, LLMResponse, StreamChunk, ToolCall, ToolResult

console = Console()


def image_to_data_uri(value: str) -> str:
    """Accept a data URI as-is, or read a local file into one."""
    if value.startswith("data:"):
        return value
    path = Path(value)
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    data = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{data}"


def build_messages(prompt: str, system: str | None, images: tuple[str, ...]) -> list[ChatMessage]:
    messages: list[ChatMessage] = []
    if system:
        messages.append(ChatMessage(role="system", content=system))
    if images:
        parts: list[dict] = [{"type": "text", "text": prompt}]
        parts.extend(
            {"type": "image_url", "image_url": {"url": image_to_data_uri(i)}}
            for i in images
        )
        messages.append(ChatMessage(role="user", content=parts))
    else:
        messages.append(ChatMessage(role="user", content=prompt))
    return messages


class StreamingDisplay:
    """Renders chat callbacks to the terminal in real time."""

    def __init__(self, con: Console):
        self.con = con
        self._thinking = False
        self.errors: list[BridgeError] = []

    def on_update(self, text: str, chunk: StreamChunk) -> None:
        if chunk.is_thinking:
            self._thinking = True
            self.con.print(f"[dim italic]{chunk.text}[/dim italic]", end="", highlight=False)
            return
        if self._thinking:
            self._thinking = False
            self.con.print()
        self.con.print(chunk.text, end="", highlight=False)

    def on_before_tool(self, call: ToolCall) -> None:
        args = call.arguments
        if len(args) > 120:
            args = args[:120] + "..."
        self.con.print(f"\n[yellow]> {call.name}[/yellow] [dim]{args}[/dim]")

    def on_after_tool(self, call: ToolCall, result: ToolResult) -> None:
        icon = "[green]OK[/green]" if result.success else "[red]FAIL[/red]"
        out = result.to_message()
        if len(out) > 600:
            out = out[:600] + "\n..."
        if out.strip():
            self.con.print(Panel(out, title=f"{icon} {call.name}",
                                 border_style="dim", expand=False))

    def on_error(self, error: BridgeError) -> None:
        self.errors.append(error)
        self.con.print(f"\n[red]Error: {error}[/red]")

    def on_finish(self, text: str, response: LLMResponse) -> None:
        self.con.print()
        if not text.strip():
            self.con.print("[dim](empty response)[/dim]")


async def run_chat(
    config: BridgeConfig,
    messages: list[ChatMessage],
    display: StreamingDisplay,
    verbose: bool = False,
) -> int:
    registry = ToolRegistry()
    registry.discover()
    event_bus = EventBus()
    if verbose:
        event_bus.subscribe(
            "*", lambda e: logging.getLogger(__name__).debug("%s %s", e.type.value, e.data),
        )

    api = GeminiApi(config, registry=registry, event_bus=event_bus)
    options = ChatOptions(
        messages=messages,
        config=config.model,
        on_update=display.on_update,
        on_finish=display.on_finish,
        on_error=display.on_error,
        on_before_tool=display.on_before_tool,
        on_after_tool=display.on_after_tool,
    )
    try:
        response = await api.chat(options)
        if response is None:
            return 1
        if not config.model.stream:
            console.print(response.content, highlight=False)
        return 0
    finally:
        await api.close()


@click.command()
@click.argument("prompt")
@click.option("--config", "-c", "config_path", default=None,
              help="Path to gemini_bridge.yaml (auto-detected from CWD or ~/.gemini_bridge/)")
@click.option("--model", "-m", default=None, help="Model id, e.g. gemini-2.5-flash")
@click.option("--system", "-s", default=None, help="System prompt")
@click.option("--image", "-i", "images", multiple=True,
              help="Image file or data URI (repeatable)")
@click.option("--no-stream", is_flag=True, help="Wait for the full answer instead of streaming")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(prompt: str, config_path: str | None, model: str | None, system: str | None,
         images: tuple[str, ...], no_stream: bool, verbose: bool):
    """Send PROMPT to Gemini and print the answer."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    config, config_file = load_config(config_path)
    # A standalone process cannot reach the hosted proxy path
    if "is_app" not in config.provider.model_fields_set:
        config.provider.is_app = True
    if config_file:
        console.print(f"[dim]Config: {config_file}[/dim]")
    if model:
        config.model.model = model
    if no_stream:
        config.model.stream = False

    display = StreamingDisplay(console)
    messages = build_messages(prompt, system, images)
    code = asyncio.run(run_chat(config, messages, display, verbose))
    raise SystemExit(code)


if __name__ == "__main__":
    main()
