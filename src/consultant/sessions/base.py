"""Abstract base class for session persistence backends.

This module defines the interface the session manager expects from its
persistence collaborator. The abstraction hides:
- Storage format and location (in-memory, SQLite, hosted database)
- Connection management
- Ordering guarantees of the underlying queries
"""

from abc import ABC, abstractmethod

from .models import ChatMessage, ConversationSession


class SessionStore(ABC):
    """Abstract session persistence backend.

    Failures are reported by raising `SessionStoreError`, never by
    returning empty results.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @abstractmethod
    async def create_session(self, owner_id: str | None, title: str) -> ConversationSession:
        """Create and return a new session record.

        Raises:
            SessionCreationError: If the session cannot be allocated
        """

    @abstractmethod
    async def list_messages(self, session_id: str) -> list[ChatMessage]:
        """Return all messages of a session, oldest first."""

    @abstractmethod
    async def list_sessions(self, owner_id: str | None, limit: int) -> list[ConversationSession]:
        """Return up to `limit` sessions of an owner, most recently updated first."""

    @abstractmethod
    async def add_message(self, session_id: str, message: ChatMessage) -> None:
        """Append a message to a session and touch its `updated_at`."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "SessionStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
