"""CLI commands for installed and library models."""

import asyncio
import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from dwight.backend.availability import AvailabilityController
from dwight.backend.client import OllamaClient, PullProgress
from dwight.backend.lifecycle import HttpProbeLifecycle
from dwight.backend.library import library_models, with_install_status
from dwight.config.loader import ConfigError, load_config
from dwight.config.schema import DwightConfig
from dwight.errors import DwightError

console = Console()
logger = logging.getLogger(__name__)


def _config(config_path: str | None) -> DwightConfig | None:
    try:
        return load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return None


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}TB"


def list_models(config_path: str | None = None) -> None:
    """List models installed on the backend."""
    config = _config(config_path)
    if config is None:
        return
    asyncio.run(_async_list(config))


async def _async_list(config: DwightConfig) -> None:
    async with OllamaClient(host=config.ollama.host, timeout=config.ollama.timeout) as client:
        try:
            models = await client.list_models_detailed()
        except DwightError as e:
            console.print(f"[red]{e}[/red]")
            return

    if not models:
        console.print("[yellow]No models installed[/yellow]")
        return

    table = Table(title="Installed Models", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Size", justify="right")
    table.add_column("Modified", style="dim")
    for model in models:
        table.add_row(model.name, _format_size(model.size), model.modified_at[:19])
    console.print(table)


def pull_model(name: str, config_path: str | None = None) -> None:
    """Pull a model and wait until the backend lists it."""
    config = _config(config_path)
    if config is None:
        return
    asyncio.run(_async_pull(config, name))


async def _async_pull(config: DwightConfig, name: str) -> None:
    async with OllamaClient(host=config.ollama.host, timeout=config.ollama.timeout) as client:
        controller = AvailabilityController(
            client,
            HttpProbeLifecycle(host=config.ollama.host),
            poll_interval=config.ollama.poll_interval,
            pull_timeout=config.ollama.pull_timeout,
        )

        with console.status(f"[bold green]Pulling {name}...[/bold green]", spinner="dots") as status:

            def show_progress(progress: PullProgress) -> None:
                text = progress.status
                if progress.total:
                    text += f" {progress.completed * 100 // progress.total}%"
                status.update(f"[bold green]{name}:[/bold green] {text}")

            try:
                await controller.ensure_backend_reachable()
                if await controller.is_model_present(name):
                    console.print(f"[green]{name} is already installed[/green]")
                    return
                await controller.pull_model(name, on_progress=show_progress)
            except DwightError as e:
                console.print(f"[red]{e}[/red]")
                return

    console.print(f"[green]✓ {name} is ready[/green]")


def remove_model(name: str, config_path: str | None = None) -> None:
    """Delete an installed model."""
    config = _config(config_path)
    if config is None:
        return
    asyncio.run(_async_remove(config, name))


async def _async_remove(config: DwightConfig, name: str) -> None:
    async with OllamaClient(host=config.ollama.host, timeout=config.ollama.timeout) as client:
        try:
            await client.delete_model(name)
        except DwightError as e:
            console.print(f"[red]{e}[/red]")
            return
    console.print(f"[green]Removed {name}[/green]")


def show_library(tag: str | None = None, config_path: str | None = None) -> None:
    """List curated library models, marking the installed ones."""
    config = _config(config_path)
    if config is None:
        return

    models = library_models(tag)
    if not models:
        console.print(f"[yellow]No library models tagged '{tag}'[/yellow]")
        return

    installed = asyncio.run(_async_installed(config))
    if installed is None:
        console.print("[yellow]Ollama is not reachable; install status unknown[/yellow]")

    table = Table(title="Model Library", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Size", justify="right")
    table.add_column("Description", style="white")
    table.add_column("Tags", style="dim")
    table.add_column("Installed", justify="center")

    for model, present in with_install_status(models, installed or []):
        mark = "?" if installed is None else ("[green]✓[/green]" if present else "")
        table.add_row(model.name, model.size, model.description, ", ".join(model.tags), mark)

    console.print(table)
    console.print("[dim]Install with: dwight models pull <name>[/dim]")


async def _async_installed(config: DwightConfig) -> list[str] | None:
    async with OllamaClient(host=config.ollama.host, timeout=config.ollama.timeout) as client:
        try:
            return await client.list_models()
        except DwightError as e:
            logger.debug("Could not list installed models: %s", e)
            return None
