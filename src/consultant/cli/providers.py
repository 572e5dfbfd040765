"""Provider factory functions for the CLI.

Centralizes creation of stores, the stream consumer and logging from
environment variables. Hides configuration details from commands.
"""

import logging
import os
from collections.abc import Callable

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..access import StaticAccessGate
from ..config import LogLevel
from ..sessions import ConversationStateStore, SessionStore, create_session_store
from ..streaming import StreamConsumer

# Default console for output
_console = Console()


def configure_logging(level: str | None = None) -> int:
    """Install a Rich log handler on the package logger.

    Environment variables:
        CONSULTANT_LOG_LEVEL: debug, info, warning or error (default: warning)
    """
    numeric = LogLevel.from_string(level or os.getenv("CONSULTANT_LOG_LEVEL", "warning"))
    logger = logging.getLogger("consultant")
    logger.setLevel(numeric)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    return numeric


def get_session_store() -> SessionStore:
    """Create the session store from environment variables.

    Environment variables:
        CONSULTANT_SESSION_BACKEND: memory or sqlite (default: sqlite)
        CONSULTANT_DB_PATH: SQLite file (default: ~/.consultant/sessions.db)
    """
    backend = os.getenv("CONSULTANT_SESSION_BACKEND", "sqlite").lower()
    if backend == "sqlite":
        path = os.getenv("CONSULTANT_DB_PATH", os.path.expanduser("~/.consultant/sessions.db"))
        return create_session_store("sqlite", path=path)
    return create_session_store(backend)


def get_state_store() -> ConversationStateStore:
    """Create the persisted key mapping and browsing context.

    Environment variables:
        CONSULTANT_STATE_PATH: JSON file (default: ~/.consultant/state.json)
    """
    path = os.getenv("CONSULTANT_STATE_PATH", os.path.expanduser("~/.consultant/state.json"))
    return ConversationStateStore(path)


def get_user_id() -> str:
    """Owner id for sessions (CONSULTANT_USER_ID, default: local)."""
    return os.getenv("CONSULTANT_USER_ID", "local")


def get_access_gate() -> StaticAccessGate:
    """Access gate for the CLI; entitlement is enforced by the backend."""
    return StaticAccessGate(allowed=True)


def get_consumer(active_session: Callable[[], str | None], console: Console | None = None) -> StreamConsumer:
    """Create the stream consumer from environment variables.

    Raises:
        typer.Exit: If CONSULTANT_URL is not set

    Environment variables:
        CONSULTANT_URL: Chat endpoint URL (required)
        CONSULTANT_ACCESS_TOKEN: Bearer token for the endpoint
    """
    con = console or _console
    url = os.getenv("CONSULTANT_URL")
    if not url:
        con.print("[red]Error: CONSULTANT_URL not set in environment[/red]")
        raise typer.Exit(code=1)
    return StreamConsumer(
        url,
        active_session=active_session,
        access_token=os.getenv("CONSULTANT_ACCESS_TOKEN"),
    )
