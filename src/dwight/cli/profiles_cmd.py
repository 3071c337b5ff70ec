"""CLI commands for managing model profiles in dwight.yaml."""

from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from dwight.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config, save_config
from dwight.config.schema import DwightConfig, ProfileConfig

console = Console()


def _load(config_path: str | None) -> tuple[DwightConfig, Path] | None:
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    try:
        return load_config(path), path
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return None


def _save(config: DwightConfig, path: Path) -> bool:
    try:
        save_config(config, path)
    except OSError as e:
        console.print(f"[red]Failed to write {path}: {e}[/red]")
        return False
    return True


def list_profiles(config_path: str | None = None) -> None:
    """Show configured profiles, marking the current one."""
    loaded = _load(config_path)
    if loaded is None:
        return
    config, _ = loaded

    table = Table(title="Profiles", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Model", style="green")
    table.add_column("Temp", justify="right")
    table.add_column("System Prompt", style="dim")

    for index, profile in enumerate(config.profiles):
        marker = f"[bold]*{index}[/bold]" if index == config.current_profile else str(index)
        prompt = profile.system_prompt
        if len(prompt) > 50:
            prompt = prompt[:47] + "..."
        table.add_row(marker, profile.name, profile.model, f"{profile.temperature:.1f}", prompt)

    console.print(table)


def add_profile(
    name: str,
    model: str,
    system_prompt: str = "",
    temperature: float = 0.7,
    config_path: str | None = None,
) -> None:
    """Append a profile and save the config file."""
    loaded = _load(config_path)
    if loaded is None:
        return
    config, path = loaded

    if any(p.name == name for p in config.profiles):
        console.print(f"[red]A profile named '{name}' already exists[/red]")
        return

    try:
        profile = ProfileConfig(
            name=name,
            model=model,
            system_prompt=system_prompt,
            temperature=temperature,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid profile: {e}[/red]")
        return

    config.profiles.append(profile)
    if _save(config, path):
        console.print(f"[green]Added profile {len(config.profiles) - 1}: {name}[/green] ({model})")


def remove_profile(index: int, yes: bool = False, config_path: str | None = None) -> None:
    """Delete a profile, keeping the current index on the same profile where possible."""
    loaded = _load(config_path)
    if loaded is None:
        return
    config, path = loaded

    if not 0 <= index < len(config.profiles):
        console.print(f"[red]No profile with index {index}[/red]")
        return
    if len(config.profiles) == 1:
        console.print("[red]Cannot remove the only profile[/red]")
        return

    name = config.profiles[index].name
    if not yes and not Confirm.ask(f"Delete profile '{name}'?", default=False):
        return

    del config.profiles[index]
    if index < config.current_profile:
        config.current_profile -= 1
    config.current_profile = min(config.current_profile, len(config.profiles) - 1)

    if _save(config, path):
        console.print(f"[green]Deleted profile:[/green] {name}")


def use_profile(index: int, config_path: str | None = None) -> None:
    """Make a profile the default for new chat sessions."""
    loaded = _load(config_path)
    if loaded is None:
        return
    config, path = loaded

    if not 0 <= index < len(config.profiles):
        console.print(f"[red]No profile with index {index}[/red]")
        return

    config.current_profile = index
    if _save(config, path):
        console.print(f"[green]Default profile set to:[/green] {config.profiles[index].name}")
