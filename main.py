"""
llmbridge - Command line entry point

Send a prompt to any configured provider, stream the answer, or list
how each provider is configured.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from llmbridge.config.loader import load_settings
from llmbridge.config.schema import EngineSettings
from llmbridge.engine import Engine
from llmbridge.exceptions import LLMBridgeError
from llmbridge.llm.messages import Message, Provider, Role
from llmbridge.observability.logging_config import configure_logging

root_env = Path(__file__).parent / ".env"
if root_env.exists():
    load_dotenv(root_env, override=True)
else:
    load_dotenv(override=True)

app = typer.Typer(
    name="llmbridge",
    help="llmbridge - one chat interface over several LLM providers",
)
console = Console()

logger = logging.getLogger("llmbridge")


@app.callback()
def _setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info-level logs"),
):
    configure_logging(level=logging.INFO if verbose else logging.WARNING)


def _get_settings(config: Optional[Path]) -> EngineSettings:
    """Load settings, with a friendly error on failure."""
    try:
        return load_settings(config)
    except LLMBridgeError as e:
        console.print(Panel(
            Text(str(e), style="red"),
            title="⚠ Configuration Error",
            border_style="red",
        ))
        raise typer.Exit(code=1)


def _build_messages(prompt: str, system: Optional[str]) -> list[Message]:
    messages = []
    if system:
        messages.append(Message(role=Role.SYSTEM, content=system))
    messages.append(Message(role=Role.USER, content=prompt))
    return messages


def _build_options(model: Optional[str], temperature: Optional[float]) -> dict:
    options = {}
    if model:
        options["model"] = model
    if temperature is not None:
        options["temperature"] = temperature
    return options


def _fail(e: LLMBridgeError) -> None:
    console.print(Panel(Text(str(e), style="red"), title="⚠ Request Failed", border_style="red"))
    raise typer.Exit(code=1)


@app.command()
def send(
    prompt: str = typer.Argument(..., help="User prompt"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="openai, claude or gemini"),
    model: Optional[str] = typer.Option(None, help="Override the configured model"),
    system: Optional[str] = typer.Option(None, help="System instructions"),
    temperature: Optional[float] = typer.Option(None, help="Sampling temperature"),
    config: Optional[Path] = typer.Option(None, help="Path to llmbridge.yaml"),
):
    """Send a prompt and print the complete answer."""
    settings = _get_settings(config)

    async def _run():
        async with Engine(settings) as engine:
            return await engine.engine(provider).send(
                _build_messages(prompt, system),
                _build_options(model, temperature),
            )

    try:
        response = asyncio.run(_run())
    except LLMBridgeError as e:
        _fail(e)

    console.print(Panel(
        response.content,
        title=f"{response.provider} · {response.model}",
        border_style="green",
    ))
    if response.usage:
        table = Table(title="Usage")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="bold")
        for key, value in response.usage.items():
            table.add_row(str(key), str(value))
        console.print(table)


@app.command()
def stream(
    prompt: str = typer.Argument(..., help="User prompt"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="openai, claude or gemini"),
    model: Optional[str] = typer.Option(None, help="Override the configured model"),
    system: Optional[str] = typer.Option(None, help="System instructions"),
    temperature: Optional[float] = typer.Option(None, help="Sampling temperature"),
    config: Optional[Path] = typer.Option(None, help="Path to llmbridge.yaml"),
):
    """Stream the answer to a prompt as it arrives."""
    settings = _get_settings(config)

    async def _run():
        async with Engine(settings) as engine:
            deltas = engine.engine(provider).stream(
                _build_messages(prompt, system),
                _build_options(model, temperature),
            )
            async with deltas:
                async for delta in deltas:
                    console.print(delta.content, end="", markup=False, highlight=False)
            console.print()
            console.print(
                f"[dim]{deltas.provider} · {deltas.model} · "
                f"{deltas.chunk_count} chunks, {deltas.skipped} skipped[/]"
            )

    try:
        asyncio.run(_run())
    except LLMBridgeError as e:
        _fail(e)


@app.command()
def providers(
    config: Optional[Path] = typer.Option(None, help="Path to llmbridge.yaml"),
):
    """Show how each provider is configured."""
    settings = _get_settings(config)
    engine = Engine(settings)

    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Model", style="bold")
    table.add_column("Base URL")
    table.add_column("API Key")
    table.add_column("Default")

    for p in Provider:
        section = settings.provider(p.value)
        driver_config = engine.engine(p.value).get_config()
        table.add_row(
            p.value,
            driver_config["model"],
            driver_config["base_url"],
            "[green]set[/]" if section.api_key else "[red]missing[/]",
            "✓" if p.value == settings.default else "",
        )

    console.print(table)
    console.print(
        f"Memory: [cyan]{settings.memory.backend.value}[/] "
        f"(default driver [bold]{settings.default_memory}[/])"
    )
    asyncio.run(engine.aclose())


if __name__ == "__main__":
    app()
