"""Interactive chat REPL command."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from dwight.backend.availability import AvailabilityController
from dwight.backend.client import OllamaClient
from dwight.backend.lifecycle import HttpProbeLifecycle
from dwight.chat.context import context_usage
from dwight.chat.driver import SessionDriver
from dwight.chat.session import ChatSession
from dwight.chat.states import (
    ChatState,
    Event,
    Failed,
    ModelNotAvailable,
    Ready,
    ResponseReceived,
    state_label,
)
from dwight.chat.types import ContentDelta
from dwight.config.loader import ConfigError, load_config, setup_logging
from dwight.errors import DwightError, InvalidTransition, PersistenceError, ValidationError
from dwight.storage.conversations import ConversationStore

if TYPE_CHECKING:
    from dwight.config.schema import DwightConfig

console = Console()
logger = logging.getLogger(__name__)


def chat_command(
    config_path: str | None = None,
    profile: int | None = None,
    stream: bool | None = None,
    conversation_id: str | None = None,
) -> None:
    """Start interactive chat session.

    Args:
        config_path: Optional path to config file
        profile: Optional profile index overriding the configured one
        stream: Optional override of the configured streaming mode
        conversation_id: Optional saved conversation to resume
    """
    path = Path(config_path) if config_path else None
    try:
        config = load_config(path)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return

    setup_logging(config)

    if profile is not None:
        if not 0 <= profile < len(config.profiles):
            console.print(f"[red]No profile with index {profile}[/red]")
            return
        config.current_profile = profile
    if stream is not None:
        config.chat.stream = stream

    asyncio.run(_async_chat(config, conversation_id))


def build_session(config: DwightConfig) -> ChatSession:
    """Wire a chat session from configuration."""
    client = OllamaClient(host=config.ollama.host, timeout=config.ollama.timeout)
    availability = AvailabilityController(
        client,
        HttpProbeLifecycle(host=config.ollama.host),
        poll_interval=config.ollama.poll_interval,
        pull_timeout=config.ollama.pull_timeout,
    )
    return ChatSession(
        profiles=config.profile_set(),
        client=client,
        availability=availability,
        stream=config.chat.stream,
        preamble=config.chat.main_prompt,
    )


class ReplyPrinter:
    """Prints streamed fragments as they arrive."""

    def __init__(self, stream: bool):
        self.stream = stream

    def __call__(self, event: Event, state: ChatState) -> None:
        if isinstance(event, ContentDelta):
            console.print(event.content, end="", markup=False, highlight=False)
        elif isinstance(event, ResponseReceived):
            if self.stream:
                console.print()
            else:
                console.print(Markdown(event.result.content))


async def _async_chat(config: DwightConfig, conversation_id: str | None = None) -> None:
    """Async chat loop.

    Args:
        config: dwight configuration
        conversation_id: Optional saved conversation to resume
    """
    session = build_session(config)
    store = ConversationStore(config.storage.conversations_dir)
    driver = SessionDriver(session, on_event=ReplyPrinter(session.stream))

    if conversation_id:
        try:
            session.load_conversation(store.load(conversation_id))
            console.print(f"[cyan]Loaded:[/cyan] {session.conversation.title}")
        except PersistenceError as e:
            console.print(f"[red]Failed to load conversation: {e}[/red]")
            await session.client.close()
            return

    console.print(
        Panel.fit(
            f"[bold blue]dwight chat[/bold blue]\n"
            f"Profile: {session.profile.name}  Model: {session.profile.model}\n"
            f"Type /help for commands, /exit to quit",
            border_style="blue",
        )
    )

    try:
        with console.status("[bold green]Checking model...[/bold green]", spinner="dots"):
            await driver.run(session.open())

        while not session.closed:
            state = session.state

            if isinstance(state, ModelNotAvailable):
                console.print(f"\n[yellow]Model '{state.model}' is not installed.[/yellow]")
                if Confirm.ask("Pull it now?", default=True):
                    with console.status(
                        f"[bold green]Pulling {state.model}...[/bold green]", spinner="dots"
                    ):
                        await driver.run(session.confirm_pull())
                else:
                    session.decline_pull()
                continue

            if isinstance(state, Failed):
                console.print(f"\n[red]Error: {state.message}[/red]")
                choice = Prompt.ask("Retry or quit?", choices=["retry", "quit"], default="retry")
                if choice == "retry":
                    with console.status("[bold green]Checking model...[/bold green]", spinner="dots"):
                        await driver.run(session.retry())
                else:
                    session.close()
                continue

            try:
                user_input = Prompt.ask(f"\n[bold cyan]{escape(config.chat.user_name)}[/bold cyan]")
            except KeyboardInterrupt:
                console.print("\n[yellow]Interrupted[/yellow]")
                if Confirm.ask("Exit chat?", default=False):
                    break
                continue

            if not user_input.strip():
                continue

            if user_input.startswith("/"):
                if _handle_slash_command(user_input, session, store):
                    break
                continue

            try:
                effect = session.submit(user_input)
            except (ValidationError, InvalidTransition) as e:
                console.print(f"[red]{e}[/red]")
                continue

            console.print(f"\n[bold green]{session.profile.name}[/bold green]")
            if session.stream:
                await driver.run(effect)
            else:
                with console.status("[bold green]Thinking...[/bold green]", spinner="dots"):
                    await driver.run(effect)

            if isinstance(session.state, Ready):
                _print_turn_stats(session)

    except EOFError:
        pass
    finally:
        _autosave(session, store)
        session.close()
        await driver.drain()
        await session.client.close()

    console.print("\n[cyan]Goodbye![/cyan]")


def _print_turn_stats(session: ChatSession) -> None:
    last = session.messages[-1]
    if last.role != "assistant":
        return
    console.print(
        f"[dim]{last.duration:.1f}s | prompt: {last.prompt_tokens}, "
        f"response: {last.response_tokens}[/dim]"
    )


def _autosave(session: ChatSession, store: ConversationStore) -> None:
    if not session.messages:
        return
    try:
        conv = session.save(store)
        console.print(f"[dim]Saved conversation {conv.id}[/dim]")
    except DwightError as e:
        console.print(f"[red]Failed to save: {e}[/red]")


def _handle_slash_command(command: str, session: ChatSession, store: ConversationStore) -> bool:
    """Handle slash commands.

    Args:
        command: Command string starting with /
        session: Active chat session
        store: Conversation store for /save

    Returns:
        True if should exit chat loop
    """
    name, _, arg = command.strip().partition(" ")
    name = name.lower()
    arg = arg.strip()

    if name in ("/exit", "/quit", "/q"):
        return True

    try:
        if name == "/help":
            console.print("\n[bold]Available commands:[/bold]")
            console.print("  /help           - Show this help")
            console.print("  /exit           - Save and exit chat")
            console.print("  /save           - Save the conversation")
            console.print("  /new            - Save and start a new conversation")
            console.print("  /trim           - Trim history to the model's context window")
            console.print("  /attach PATH    - Attach a file as context")
            console.print("  /detach PATH    - Remove an attached file")
            console.print("  /attachments    - List attached files")
            console.print("  /profile [N]    - Show profiles or switch to profile N")
            console.print("  /status         - Show session status")
            console.print("  /clear          - Clear screen")

        elif name == "/clear":
            console.clear()

        elif name == "/save":
            conv = session.save(store)
            console.print(f"[green]Saved:[/green] {conv.title} ({conv.id})")

        elif name == "/new":
            if session.messages:
                session.save(store)
            session.new_conversation()
            console.print("[green]New conversation started[/green]")

        elif name == "/trim":
            dropped = session.trim_history()
            if dropped:
                console.print(f"[yellow]Trimmed {dropped} messages[/yellow]")
            else:
                console.print("[green]Conversation fits in context window[/green]")

        elif name == "/attach":
            if not arg:
                console.print("[red]Usage: /attach PATH[/red]")
            elif not Path(arg).expanduser().is_file():
                console.print(f"[red]No such file: {arg}[/red]")
            elif session.attach(Path(arg).expanduser()):
                console.print(f"[green]Attached {arg}[/green]")
            else:
                console.print(f"[yellow]{arg} is already attached[/yellow]")

        elif name == "/detach":
            if session.detach(Path(arg).expanduser()):
                console.print(f"[green]Detached {arg}[/green]")
            else:
                console.print(f"[yellow]{arg} is not attached[/yellow]")

        elif name == "/attachments":
            if not session.attached:
                console.print("[dim]No attached resources[/dim]")
            for path in session.attached:
                console.print(f"  • {path}")

        elif name == "/profile":
            if arg:
                profile = session.switch_profile(int(arg))
                console.print(f"[green]Switched to {profile.name}[/green] ({profile.model})")
            else:
                for index, profile in enumerate(session.profiles):
                    marker = "*" if index == session.profiles.current else " "
                    console.print(f" {marker} {index}: {profile.name} ({profile.model})")

        elif name == "/status":
            used, window, percent = context_usage(session.messages, session.profile.model)
            console.print(f"\n[cyan]State:[/cyan] {state_label(session.state)}")
            console.print(f"[cyan]Profile:[/cyan] {session.profile.name} ({session.profile.model})")
            console.print(f"[cyan]Temperature:[/cyan] {session.profile.temperature}")
            console.print(f"[cyan]Messages:[/cyan] {len(session.messages)}")
            console.print(f"[cyan]Tokens:[/cyan] {used}/{window} ({percent}%)")
            if session.conversation is not None:
                console.print(f"[cyan]Conversation:[/cyan] {session.conversation.title}")

        else:
            console.print(f"[red]Unknown command: {command}[/red]")
            console.print("Type /help for available commands")

    except ValueError:
        console.print(f"[red]Invalid argument: {arg}[/red]")
    except IndexError as e:
        console.print(f"[red]{e}[/red]")
    except DwightError as e:
        console.print(f"[red]{e}[/red]")

    return False
