"""In-memory session store.

Simple dict-based storage; data is lost when the process exits.
"""

from ..exceptions import SessionCreationError, SessionStoreError
from .base import SessionStore
from .models import ChatMessage, ConversationSession, utcnow


class InMemorySessionStore(SessionStore):
    """In-memory session store (process lifetime only).

    Suitable for single-run use or testing.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ConversationSession] = {}
        self._messages: dict[str, list[ChatMessage]] = {}

    async def connect(self) -> None:
        """Initialize store (no-op for in-memory)."""

    async def disconnect(self) -> None:
        """Close store (no-op for in-memory)."""

    async def create_session(self, owner_id: str | None, title: str) -> ConversationSession:
        session = ConversationSession(owner_id=owner_id, title=title)
        if session.id in self._sessions:
            raise SessionCreationError(f"Session id collision: {session.id}")
        self._sessions[session.id] = session
        self._messages[session.id] = []
        return session

    async def list_messages(self, session_id: str) -> list[ChatMessage]:
        if session_id not in self._messages:
            raise SessionStoreError(f"Unknown session: {session_id}")
        return sorted(self._messages[session_id], key=lambda m: m.created_at)

    async def list_sessions(self, owner_id: str | None, limit: int) -> list[ConversationSession]:
        owned = [s for s in self._sessions.values() if s.owner_id == owner_id]
        owned.sort(key=lambda s: s.last_active, reverse=True)
        return owned[:limit]

    async def add_message(self, session_id: str, message: ChatMessage) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionStoreError(f"Unknown session: {session_id}")
        self._messages[session_id].append(message.model_copy())
        self._sessions[session_id] = session.model_copy(update={"updated_at": utcnow()})

    @property
    def backend_type(self) -> str:
        return "memory"
