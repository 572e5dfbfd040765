"""Session manager: conversation-session identity and lifecycle.

Each chat surface is identified by a logical key. The manager maps keys
to session ids through an injected `KeyValueStore`, hydrates the
active session of a key from the persistence collaborator, and tracks
which session is currently active so that late stream output for an
abandoned session can be detected.
"""

import logging
from datetime import date, tzinfo

from ..config import ARCHIVE_LIMIT, DEFAULT_SESSION_TITLE
from ..exceptions import SessionCreationError, SessionStoreError
from .base import SessionStore
from .keystore import KeyValueStore
from .models import (
    ArchiveGroup,
    ChatMessage,
    ConversationSession,
    HydrationState,
    MessageLoad,
    SessionHandle,
)

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the active session of every logical chat surface.

    State machine per key: UNINITIALIZED -> HYDRATING -> HYDRATED.
    HYDRATING is re-entered on `start_new_session` and `select_session`.
    """

    def __init__(
        self,
        store: SessionStore,
        key_store: KeyValueStore,
        owner_id: str | None = None,
        default_title: str = DEFAULT_SESSION_TITLE,
    ):
        self._store = store
        self._key_store = key_store
        self._owner_id = owner_id
        self._default_title = default_title
        self._handles: dict[str, SessionHandle] = {}
        self._states: dict[str, HydrationState] = {}
        self._active_ids: dict[str, str] = {}

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    @property
    def store(self) -> SessionStore:
        return self._store

    def state(self, key: str) -> HydrationState:
        """Current hydration state of `key`."""
        return self._states.get(key, HydrationState.UNINITIALIZED)

    def handle(self, key: str) -> SessionHandle | None:
        """The hydrated session of `key`, if any."""
        return self._handles.get(key)

    def active_session_id(self, key: str) -> str | None:
        """Id of the session `key` currently points at.

        Switches as soon as a new target is chosen, before its messages
        finish loading, and is None while a new session is being created.
        """
        return self._active_ids.get(key)

    async def _create_session(self) -> ConversationSession:
        try:
            return await self._store.create_session(self._owner_id, self._default_title)
        except SessionCreationError:
            logger.error("Could not create a conversation session for owner %s", self._owner_id)
            raise
        except SessionStoreError as e:
            logger.error("Could not create a conversation session for owner %s", self._owner_id)
            raise SessionCreationError(str(e)) from e

    async def load_messages(
        self,
        session_id: str,
        previous: list[ChatMessage] | None = None,
    ) -> MessageLoad:
        """Fetch a session's messages, oldest first.

        A failed read is not fatal: the previous in-memory list is
        returned unchanged together with the error.
        """
        try:
            messages = await self._store.list_messages(session_id)
        except SessionStoreError as e:
            logger.warning("Failed to load messages for session %s: %s", session_id, e)
            return MessageLoad(messages=list(previous or []), error=e)
        return MessageLoad(messages=sorted(messages, key=lambda m: m.created_at))

    async def resolve_active_session(self, key: str, forced_id: str | None = None) -> SessionHandle:
        """Load or create the active session for `key`.

        A `forced_id` wins over any mapped id for this call and is
        written into the mapping so later calls reuse it.

        Raises:
            SessionCreationError: If a new session had to be created and
                could not be
        """
        previous_state = self.state(key)
        previous_handle = self._handles.get(key)
        previous_active = self._active_ids.get(key)
        self._states[key] = HydrationState.HYDRATING

        if forced_id:
            session_id = forced_id
            self._key_store.set(key, session_id)
        else:
            session_id = self._key_store.get(key)
            if not session_id:
                self._active_ids.pop(key, None)
                try:
                    session = await self._create_session()
                except SessionCreationError:
                    self._restore(key, previous_state, previous_handle, previous_active)
                    raise
                session_id = session.id
                self._key_store.set(key, session_id)

        self._active_ids[key] = session_id
        fallback = previous_handle.messages if previous_handle and previous_handle.session_id == session_id else None
        load = await self.load_messages(session_id, fallback)
        return self._hydrated(key, session_id, load)

    async def start_new_session(self, key: str) -> SessionHandle:
        """Create a fresh session for `key` and make it active ("New Chat").

        Any response still streaming into the previous session becomes
        stale the moment this is called.

        Raises:
            SessionCreationError: If the session cannot be created; the
                previous session stays active in that case
        """
        previous_state = self.state(key)
        previous_handle = self._handles.get(key)
        previous_active = self._active_ids.pop(key, None)
        self._states[key] = HydrationState.HYDRATING

        try:
            session = await self._create_session()
        except SessionCreationError:
            self._restore(key, previous_state, previous_handle, previous_active)
            raise

        self._key_store.set(key, session.id)
        self._active_ids[key] = session.id
        logger.info("Started new session %s for key %r", session.id, key)
        return self._hydrated(key, session.id, MessageLoad(messages=[]))

    async def select_session(self, key: str, session_id: str) -> SessionHandle:
        """Make an archived session the active one for `key`."""
        return await self.resolve_active_session(key, forced_id=session_id)

    async def save_message(self, session_id: str, message: ChatMessage) -> bool:
        """Persist a completed turn; returns False if the write failed."""
        try:
            await self._store.add_message(session_id, message)
        except SessionStoreError as e:
            logger.warning("Failed to persist message %s in session %s: %s", message.id, session_id, e)
            return False
        return True

    async def list_archive(
        self,
        owner_id: str | None = None,
        limit: int = ARCHIVE_LIMIT,
        tz: tzinfo | None = None,
    ) -> list[ArchiveGroup]:
        """List past sessions grouped by local calendar day, newest first.

        Args:
            owner_id: Owner whose sessions to list (defaults to the manager's)
            limit: Maximum number of sessions fetched
            tz: Timezone defining the calendar day (None means local time)

        Raises:
            SessionStoreError: If the sessions cannot be listed
        """
        owner = owner_id if owner_id is not None else self._owner_id
        sessions = await self._store.list_sessions(owner, limit)
        sessions = sorted(sessions, key=lambda s: s.last_active, reverse=True)[:limit]

        groups: dict[date, ArchiveGroup] = {}
        for session in sessions:
            day = session.last_active.astimezone(tz).date()
            groups.setdefault(day, ArchiveGroup(day=day)).sessions.append(session)
        return list(groups.values())

    def _hydrated(self, key: str, session_id: str, load: MessageLoad) -> SessionHandle:
        handle = SessionHandle(key=key, session_id=session_id, messages=load.messages, load_error=load.error)
        self._handles[key] = handle
        self._states[key] = HydrationState.HYDRATED
        return handle

    def _restore(
        self,
        key: str,
        state: HydrationState,
        handle: SessionHandle | None,
        active_id: str | None,
    ) -> None:
        self._states[key] = state
        if handle is not None:
            self._handles[key] = handle
        if active_id is not None:
            self._active_ids[key] = active_id
