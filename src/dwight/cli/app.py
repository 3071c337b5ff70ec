"""Main CLI application using Typer."""

import sys

import typer
from rich.console import Console

from dwight import __version__

# Create Typer app
app = typer.Typer(
    name="dwight",
    help="dwight - Local chat sessions with Ollama models",
    no_args_is_help=True,
)

console = Console()

CONFIG_HELP = "Path to config file (default: ~/.dwight/dwight.yaml)"


@app.command()
def version():
    """Show dwight version."""
    console.print(f"dwight version {__version__}")


@app.command()
def chat(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    profile: int = typer.Option(None, "--profile", "-p", help="Profile index to use"),
    stream: bool = typer.Option(None, "--stream/--no-stream", help="Stream replies"),
    conversation: str = typer.Option(
        None, "--conversation", "-r", help="Resume a saved conversation by ID"
    ),
):
    """Start interactive chat session."""
    from dwight.cli.chat import chat_command

    chat_command(
        config_path=config_path,
        profile=profile,
        stream=stream,
        conversation_id=conversation,
    )


# Profile commands
profiles_app = typer.Typer(help="Manage model profiles")
app.add_typer(profiles_app, name="profiles")


@profiles_app.command("list")
def profiles_list(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """List configured model profiles."""
    from dwight.cli.profiles_cmd import list_profiles

    list_profiles(config_path=config_path)


@profiles_app.command("add")
def profiles_add(
    name: str = typer.Argument(..., help="Profile name"),
    model: str = typer.Argument(..., help="Model name (e.g., llama3.2:3b)"),
    system_prompt: str = typer.Option("", "--system-prompt", "-s", help="System prompt"),
    temperature: float = typer.Option(0.7, "--temperature", "-t", help="Sampling temperature"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Add a model profile."""
    from dwight.cli.profiles_cmd import add_profile

    add_profile(
        name,
        model,
        system_prompt=system_prompt,
        temperature=temperature,
        config_path=config_path,
    )


@profiles_app.command("rm")
def profiles_rm(
    index: int = typer.Argument(..., help="Profile index"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Remove a model profile."""
    from dwight.cli.profiles_cmd import remove_profile

    remove_profile(index, yes=yes, config_path=config_path)


@profiles_app.command("use")
def profiles_use(
    index: int = typer.Argument(..., help="Profile index"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Set the default profile for new chat sessions."""
    from dwight.cli.profiles_cmd import use_profile

    use_profile(index, config_path=config_path)


# Conversation commands
conversations_app = typer.Typer(help="Manage saved conversations")
app.add_typer(conversations_app, name="conversations")


@conversations_app.command("list")
def conversations_list(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """List saved conversations."""
    from dwight.cli.conversations_cmd import list_conversations

    list_conversations(config_path=config_path)


@conversations_app.command("search")
def conversations_search(
    query: str = typer.Argument(..., help="Text to match in title, model or tags"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Search saved conversations."""
    from dwight.cli.conversations_cmd import search_conversations

    search_conversations(query, config_path=config_path)


@conversations_app.command("show")
def conversations_show(
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Display a saved conversation."""
    from dwight.cli.conversations_cmd import show_conversation

    show_conversation(conversation_id, config_path=config_path)


@conversations_app.command("export")
def conversations_export(
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    format: str = typer.Option(
        "markdown", "--format", "-f", help="Export format (markdown, json, text)"
    ),
    output_dir: str = typer.Option(None, "--output", "-o", help="Directory to write into"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Export a conversation to a file."""
    from dwight.cli.conversations_cmd import export_conversation

    export_conversation(
        conversation_id,
        fmt=format,
        output_dir=output_dir,
        config_path=config_path,
    )


@conversations_app.command("delete")
def conversations_delete(
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Delete a saved conversation."""
    from dwight.cli.conversations_cmd import delete_conversation

    delete_conversation(conversation_id, yes=yes, config_path=config_path)


# Model commands
models_app = typer.Typer(help="Manage models installed on the Ollama backend")
app.add_typer(models_app, name="models")


@models_app.command("list")
def models_list(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """List installed models."""
    from dwight.cli.models_cmd import list_models

    list_models(config_path=config_path)


@models_app.command("pull")
def models_pull(
    name: str = typer.Argument(..., help="Model name (e.g., llama3.2:3b)"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Pull a model and wait until it is available."""
    from dwight.cli.models_cmd import pull_model

    pull_model(name, config_path=config_path)


@models_app.command("rm")
def models_rm(
    name: str = typer.Argument(..., help="Model name"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Remove an installed model."""
    from dwight.cli.models_cmd import remove_model

    remove_model(name, config_path=config_path)


@models_app.command("library")
def models_library(
    tag: str = typer.Option(None, "--tag", "-t", help="Only show models with this tag"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Show popular models available to pull."""
    from dwight.cli.models_cmd import show_library

    show_library(tag=tag, config_path=config_path)


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
