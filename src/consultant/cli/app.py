"""Main CLI application using Typer."""
import asyncio
from pathlib import Path

import httpx
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.table import Table

from ..config import DEFAULT_SESSION_KEY, DEFAULT_SESSION_TITLE
from ..content import parse_content, render_blocks
from ..engine import ChatEngine, validate_image_size
from ..exceptions import (
    AccessDeniedError,
    EngineBusyError,
    ReauthenticationRequiredError,
    SessionCreationError,
    SessionStoreError,
    StreamError,
)
from ..sessions import ChatMessage, SessionManager
from ..startup import StartupDecision
from .providers import (
    configure_logging,
    get_access_gate,
    get_consumer,
    get_session_store,
    get_state_store,
    get_user_id,
)

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="consultant",
    help="Terminal client for the AI business consultant chat",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

EXIT_ACCESS_DENIED = 2
EXIT_REAUTHENTICATE = 3


@app.callback()
def _configure(
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning or error"
    )
):
    configure_logging(log_level)


def _print_message(engine: ChatEngine, message: ChatMessage) -> None:
    label = "[bold yellow]You[/bold yellow]" if message.role == "user" else "[bold cyan]Consultant[/bold cyan]"
    console.print(label)
    if message.image_ref:
        console.print(f"[dim]Attachment: {message.image_ref}[/dim]")
    console.print(render_blocks(engine.blocks(message)))
    console.print()


async def _stream_turn(engine: ChatEngine, send) -> None:
    """Run one exchange, re-rendering the assistant reply as it grows."""
    with Live(console=console, refresh_per_second=12, transient=False) as live:
        def on_update(message: ChatMessage) -> None:
            if message.role == "assistant":
                live.update(render_blocks(engine.blocks(message)))

        console.print("[bold cyan]Consultant[/bold cyan]")
        await send(on_update)
    console.print()


async def _run_turn(engine: ChatEngine, send) -> None:
    """Stream one exchange; a failed turn is reported and the chat goes on.

    Access and sign-in failures propagate so the command can exit.
    """
    try:
        await _stream_turn(engine, send)
    except (AccessDeniedError, ReauthenticationRequiredError):
        raise
    except (StreamError, EngineBusyError, httpx.HTTPError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")


def _check_attachment(ref: str) -> None:
    """Enforce the upload limit when `ref` names a local file.

    Raises:
        ValueError: If the file is larger than the limit
    """
    path = Path(ref).expanduser()
    if path.is_file():
        validate_image_size(path.stat().st_size)


@app.command()
def chat(
    key: str = typer.Option(
        DEFAULT_SESSION_KEY,
        "--key",
        "-k",
        help="Logical chat surface; different keys keep separate sessions"
    ),
    session: str = typer.Option(
        None,
        "--session",
        "-s",
        help="Open this session id instead of the remembered one"
    ),
    initial_message: str = typer.Option(
        None,
        "--initial-message",
        "-m",
        help="Send this message automatically if the conversation is empty"
    ),
    starter: bool = typer.Option(
        False,
        "--starter",
        help="Let the assistant open an empty conversation"
    ),
):
    """Chat with the consultant interactively.

    Commands inside the chat:
    - /new            start a new conversation
    - /expand N       expand or collapse the N-th long passage of the last reply
    - /image REF      attach an image reference to the next message
    - exit, quit, q   leave
    """

    async def _chat():
        store = get_session_store()
        state_store = get_state_store()
        manager = SessionManager(store, state_store, owner_id=get_user_id())
        consumer = get_consumer(lambda: manager.active_session_id(key), console)
        engine = ChatEngine(
            manager,
            consumer,
            get_access_gate(),
            key=key,
            user_id=get_user_id(),
            initial_message=initial_message,
            proactive_starter=starter,
            context_store=state_store,
        )

        try:
            await store.connect()
            handle = await engine.hydrate(session)
            if handle.load_error:
                console.print(f"[yellow]Warning: could not load history: {handle.load_error}[/yellow]")
            console.print(f"[dim]Session {handle.session_id}[/dim]\n")
            for message in handle.messages:
                _print_message(engine, message)

            if engine.startup_decision() is not StartupDecision.NONE:
                await _run_turn(engine, lambda cb: engine.run_startup(on_update=cb))

            console.print("[dim]Type 'exit', 'quit', or 'q' to leave\n[/dim]")
            pending_image: str | None = None

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                text = user_input.strip()
                if not text and not pending_image:
                    continue
                if text.lower() in ("exit", "quit", "q"):
                    console.print("[dim]Goodbye![/dim]")
                    break

                if text == "/new":
                    try:
                        handle = await engine.new_chat()
                    except SessionCreationError as e:
                        console.print(f"[red]Error: {e}[/red]")
                        continue
                    console.print(f"[dim]New session {handle.session_id}[/dim]\n")
                    continue

                if text.startswith("/image "):
                    ref = text.removeprefix("/image ").strip()
                    try:
                        _check_attachment(ref)
                    except ValueError as e:
                        console.print(f"[red]{e}[/red]")
                        continue
                    pending_image = ref or None
                    console.print(f"[dim]Attached {pending_image}[/dim]")
                    continue

                if text.startswith("/expand"):
                    replies = [m for m in engine.messages if m.role == "assistant"]
                    number = text.removeprefix("/expand").strip()
                    positions = engine.expandable_positions(replies[-1]) if replies else []
                    if not number.isdigit() or not 1 <= int(number) <= len(positions):
                        console.print(f"[dim]Usage: /expand N, where N is 1..{len(positions)} for the last reply[/dim]")
                        continue
                    engine.toggle_expanded(replies[-1].id, positions[int(number) - 1])
                    _print_message(engine, replies[-1])
                    continue

                image, pending_image = pending_image, None
                await _run_turn(
                    engine,
                    lambda cb, text=text, image=image: engine.send_message(text, image_ref=image, on_update=cb),
                )

        except AccessDeniedError:
            console.print("[red]An active consultant access pass is required.[/red]")
            console.print("[dim]Get one from the plans page, then try again.[/dim]")
            raise typer.Exit(code=EXIT_ACCESS_DENIED)
        except ReauthenticationRequiredError:
            console.print("[red]Your sign-in expired.[/red] [dim]Refresh CONSULTANT_ACCESS_TOKEN and retry.[/dim]")
            raise typer.Exit(code=EXIT_REAUTHENTICATE)
        except SessionCreationError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await consumer.close()
            await store.disconnect()

    asyncio.run(_chat())


@app.command()
def new(
    key: str = typer.Option(
        DEFAULT_SESSION_KEY,
        "--key",
        "-k",
        help="Logical chat surface to reset"
    )
):
    """Start a new conversation for a chat surface."""

    async def _new():
        store = get_session_store()
        manager = SessionManager(store, get_state_store(), owner_id=get_user_id())
        try:
            await store.connect()
            handle = await manager.start_new_session(key)
            console.print(f"[green]New session:[/green] {handle.session_id}")
        except SessionCreationError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_new())


@app.command()
def archive(
    limit: int = typer.Option(
        50,
        "--limit",
        "-n",
        help="Maximum number of sessions to list"
    )
):
    """List past conversations grouped by day."""

    async def _archive():
        store = get_session_store()
        manager = SessionManager(store, get_state_store(), owner_id=get_user_id())
        try:
            await store.connect()
            groups = await manager.list_archive(limit=limit)
        except SessionStoreError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

        if not groups:
            console.print("[dim]No conversations yet.[/dim]")
            return

        for group in groups:
            table = Table(title=group.day.strftime("%A, %d %B %Y"), title_justify="left")
            table.add_column("Session", style="dim")
            table.add_column("Title")
            table.add_column("Last active", justify="right")
            for s in group.sessions:
                table.add_row(s.id, s.title.strip() or DEFAULT_SESSION_TITLE, s.last_active.astimezone().strftime("%H:%M"))
            console.print(table)

    asyncio.run(_archive())


@app.command()
def render(
    path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="Text file with assistant output"
    ),
    expand: bool = typer.Option(
        False,
        "--expand",
        "-e",
        help="Show long passages in full"
    ),
):
    """Parse assistant text from a file and show the rendered blocks."""
    blocks = parse_content(path.read_text(encoding="utf-8"), expand)
    console.print(render_blocks(blocks))


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
