"""CLI commands for saved conversations."""

from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.prompt import Confirm
from rich.table import Table

from dwight.config.loader import ConfigError, load_config
from dwight.errors import PersistenceError
from dwight.storage.conversations import ConversationStore
from dwight.storage.export import EXPORT_FORMATS, export_filename
from dwight.storage.schema import ConversationMetadata

console = Console()


def _store(config_path: str | None) -> ConversationStore | None:
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return None
    return ConversationStore(config.storage.conversations_dir)


def _print_table(conversations: list[ConversationMetadata], title: str) -> None:
    if not conversations:
        console.print("[yellow]No conversations found[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="white")
    table.add_column("Model", style="green")
    table.add_column("Messages", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Modified", style="dim")

    for meta in conversations:
        table.add_row(
            meta.id,
            meta.title,
            meta.model,
            str(meta.message_count),
            str(meta.total_tokens),
            meta.last_modified.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


def list_conversations(config_path: str | None = None) -> None:
    """List saved conversations, newest first."""
    store = _store(config_path)
    if store is None:
        return
    _print_table(store.list(), "Saved Conversations")


def search_conversations(query: str, config_path: str | None = None) -> None:
    """Search conversations by title, model or tag."""
    store = _store(config_path)
    if store is None:
        return
    _print_table(store.search(query), f"Conversations matching '{query}'")


def show_conversation(conversation_id: str, config_path: str | None = None) -> None:
    """Render a conversation in the terminal."""
    store = _store(config_path)
    if store is None:
        return
    try:
        console.print(Markdown(store.export_markdown(conversation_id)))
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")


def export_conversation(
    conversation_id: str,
    fmt: str = "markdown",
    output_dir: str | None = None,
    config_path: str | None = None,
) -> None:
    """Export a conversation to a file in the exports directory."""
    if fmt not in EXPORT_FORMATS:
        console.print(f"[red]Unknown export format: {fmt}[/red] (choose from {', '.join(EXPORT_FORMATS)})")
        return

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return

    store = ConversationStore(config.storage.conversations_dir)
    try:
        conv = store.load(conversation_id)
        content = store.export(conversation_id, fmt)
    except PersistenceError as e:
        console.print(f"[red]Export failed: {e}[/red]")
        return

    export_dir = Path(output_dir or config.storage.exports_dir).expanduser()
    try:
        export_dir.mkdir(parents=True, exist_ok=True)
        path = export_dir / export_filename(conv, fmt)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Failed to write file: {e}[/red]")
        return

    console.print(f"[green]Exported to:[/green] {path}")


def delete_conversation(
    conversation_id: str,
    yes: bool = False,
    config_path: str | None = None,
) -> None:
    """Delete a saved conversation."""
    store = _store(config_path)
    if store is None:
        return

    if not yes and not Confirm.ask(f"Delete conversation {conversation_id}?", default=False):
        return

    try:
        store.delete(conversation_id)
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        return

    console.print(f"[green]Deleted:[/green] {conversation_id}")
