"""SQLite session store.

Provides persistent session and message storage using a SQLite
database file. Uses aiosqlite for async access.
"""

import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from ..exceptions import SessionCreationError, SessionStoreError
from .base import SessionStore
from .models import ChatMessage, ConversationSession, utcnow

logger = logging.getLogger(__name__)


class SQLiteSessionStore(SessionStore):
    """SQLite-backed session store.

    Sessions and their messages survive process restarts.
    """

    def __init__(self, path: str | Path = "./consultant_sessions.db"):
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database and create the schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = await aiosqlite.connect(self._db_path)
            await self._connection.execute("PRAGMA foreign_keys = ON")
            await self._create_schema()
        except aiosqlite.Error as e:
            raise SessionStoreError(f"Failed to open session database: {e}") from e

    async def _create_schema(self) -> None:
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                owner_id TEXT,
                title TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
        """)

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                image_ref TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_session
            ON messages(session_id, created_at)
        """)

        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Not connected to session database")
        return self._connection

    async def create_session(self, owner_id: str | None, title: str) -> ConversationSession:
        conn = self._require_connection()
        session = ConversationSession(owner_id=owner_id, title=title)
        try:
            await conn.execute(
                """
                INSERT INTO sessions (id, owner_id, title, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (session.id, owner_id, title, session.created_at.isoformat(timespec="microseconds"), None)
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise SessionCreationError(f"Failed to create session: {e}") from e
        return session

    async def list_messages(self, session_id: str) -> list[ChatMessage]:
        conn = self._require_connection()
        try:
            async with conn.execute(
                """
                SELECT id, role, content, image_ref, created_at
                FROM messages
                WHERE session_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (session_id,)
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise SessionStoreError(f"Failed to load messages: {e}") from e

        return [
            ChatMessage(
                id=message_id,
                role=role,
                content=content,
                image_ref=image_ref,
                created_at=datetime.fromisoformat(created_at),
            )
            for message_id, role, content, image_ref, created_at in rows
        ]

    async def list_sessions(self, owner_id: str | None, limit: int) -> list[ConversationSession]:
        conn = self._require_connection()
        try:
            async with conn.execute(
                """
                SELECT id, owner_id, title, created_at, updated_at
                FROM sessions
                WHERE owner_id IS ?
                ORDER BY COALESCE(updated_at, created_at) DESC
                LIMIT ?
                """,
                (owner_id, limit)
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise SessionStoreError(f"Failed to list sessions: {e}") from e

        return [
            ConversationSession(
                id=sid,
                owner_id=owner,
                title=title,
                created_at=datetime.fromisoformat(created_at),
                updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
            )
            for sid, owner, title, created_at, updated_at in rows
        ]

    async def add_message(self, session_id: str, message: ChatMessage) -> None:
        conn = self._require_connection()
        try:
            await conn.execute(
                """
                INSERT INTO messages (id, session_id, role, content, image_ref, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    session_id,
                    message.role,
                    message.content,
                    message.image_ref,
                    message.created_at.isoformat(timespec="microseconds"),
                )
            )
            await conn.execute(
                "UPDATE sessions SET updated_at = ? WHERE id = ?",
                (utcnow().isoformat(timespec="microseconds"), session_id)
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise SessionStoreError(f"Failed to save message: {e}") from e
        logger.debug("Stored %s message %s in session %s", message.role, message.id, session_id)

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
