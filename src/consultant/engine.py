"""Chat engine for one logical chat surface.

Composes the session manager, startup resolver, stream consumer and
content parser. The engine owns the surface's UI-side state: whether
access was granted, whether the automatic opening was already sent,
which responses are in flight and which long paragraphs are expanded.
"""

import logging
from collections.abc import Callable

from .access import AccessGate
from .config import DEFAULT_SESSION_KEY, MAX_IMAGE_BYTES
from .content import (
    ContentBlock,
    Paragraph,
    TruncatableParagraph,
    parse_content,
    strip_inline_markup,
)
from .exceptions import AccessDeniedError, EngineBusyError, NotHydratedError
from .sessions import (
    ChatMessage,
    ConversationStateStore,
    HydrationState,
    SessionHandle,
    SessionManager,
)
from .startup import StartupDecision, resolve_startup_mode
from .streaming import ChatRequest, StreamConsumer

logger = logging.getLogger(__name__)

MessageCallback = Callable[[ChatMessage], None]


def validate_image_size(size_bytes: int) -> None:
    """Reject attachments over the upload limit.

    Raises:
        ValueError: If the image exceeds MAX_IMAGE_BYTES
    """
    if size_bytes > MAX_IMAGE_BYTES:
        raise ValueError(f"Image too large ({size_bytes} bytes). Max {MAX_IMAGE_BYTES // (1024 * 1024)}MB.")


def clean_user_text(text: str) -> str:
    """Trim user input and drop emphasis markers before sending."""
    return text.strip().replace("*", "")


class ChatEngine:
    """Conversation driver bound to one logical session key."""

    def __init__(
        self,
        manager: SessionManager,
        consumer: StreamConsumer,
        access_gate: AccessGate,
        *,
        key: str = DEFAULT_SESSION_KEY,
        user_id: str | None = None,
        initial_message: str | None = None,
        proactive_starter: bool = False,
        persist_turns: bool = True,
        context_store: ConversationStateStore | None = None,
        cart_summary: str | None = None,
        page_url: str | None = None,
    ):
        self._manager = manager
        self._consumer = consumer
        self._access = access_gate
        self._key = key
        self._user_id = user_id
        self._initial_message = initial_message
        self._proactive_starter = proactive_starter
        self._persist_turns = persist_turns
        self._context_store = context_store
        self._cart_summary = cart_summary
        self._page_url = page_url

        self._has_access: bool | None = None
        self._triggered = False
        self._in_flight: set[str] = set()
        self._expanded: dict[str, dict[int, bool]] = {}

    @property
    def key(self) -> str:
        return self._key

    @property
    def has_access(self) -> bool | None:
        """Last known entitlement; None until the first check."""
        return self._has_access

    @property
    def already_triggered(self) -> bool:
        return self._triggered

    @property
    def is_hydrated(self) -> bool:
        return self._manager.state(self._key) is HydrationState.HYDRATED

    @property
    def session_id(self) -> str | None:
        return self._manager.active_session_id(self._key)

    @property
    def messages(self) -> list[ChatMessage]:
        handle = self._manager.handle(self._key)
        return handle.messages if handle else []

    @property
    def is_busy(self) -> bool:
        """True while a response streams into the active session."""
        return self.session_id in self._in_flight

    async def hydrate(self, forced_session_id: str | None = None) -> SessionHandle:
        """Check access and load (or create) the active session."""
        self._has_access = await self._access.has_access()
        handle = await self._manager.resolve_active_session(self._key, forced_session_id)
        self._expanded.clear()
        return handle

    async def select_session(self, session_id: str) -> SessionHandle:
        """Switch this surface to an archived session."""
        handle = await self._manager.select_session(self._key, session_id)
        self._expanded.clear()
        return handle

    async def new_chat(self) -> SessionHandle:
        """Start a fresh session; a response still streaming is orphaned."""
        handle = await self._manager.start_new_session(self._key)
        self._expanded.clear()
        return handle

    def startup_decision(self) -> StartupDecision:
        """Evaluate the startup resolver against the current state."""
        return resolve_startup_mode(
            has_access=bool(self._has_access),
            has_user=bool(self._user_id),
            has_session=self.is_hydrated and self._manager.handle(self._key) is not None,
            message_count=len(self.messages),
            has_initial_message=bool(self._initial_message and self._initial_message.strip()),
            proactive_starter_enabled=self._proactive_starter,
            already_triggered=self._triggered,
        )

    async def run_startup(self, on_update: MessageCallback | None = None) -> StartupDecision:
        """Send the automatic opening exchange, at most once per engine."""
        decision = self.startup_decision()
        if decision is StartupDecision.NONE:
            return decision

        self._triggered = True
        logger.info("Startup action %s for key %r", decision.value, self._key)
        if decision is StartupDecision.SEND_INITIAL_MESSAGE:
            await self.send_message(self._initial_message or "", on_update=on_update)
        else:
            await self.send_starter(on_update=on_update)
        return decision

    def _require_ready(self) -> SessionHandle:
        handle = self._manager.handle(self._key)
        if not self.is_hydrated or handle is None:
            raise NotHydratedError(f"No hydrated session for key {self._key!r}")
        if handle.session_id in self._in_flight:
            raise EngineBusyError("A response is still streaming for this conversation")
        return handle

    async def send_message(
        self,
        text: str,
        image_ref: str | None = None,
        on_update: MessageCallback | None = None,
    ) -> ChatMessage | None:
        """Send a user turn and stream the assistant reply.

        Returns:
            The assistant message, or None if nothing was sent or no text
            arrived for the active session

        Raises:
            NotHydratedError: If the session is not loaded yet
            EngineBusyError: If a reply is already streaming
            AccessDeniedError: If the user has no active entitlement
            ReauthenticationRequiredError: If the backend asks to sign in
        """
        content = clean_user_text(text)
        if not content and not image_ref:
            return None

        handle = self._require_ready()
        self._in_flight.add(handle.session_id)
        try:
            if not await self._access.has_access():
                self._has_access = False
                raise AccessDeniedError()

            user_message = ChatMessage(role="user", content=content, image_ref=image_ref)
            handle.messages.append(user_message)
            if on_update is not None:
                on_update(user_message)
            if self._persist_turns:
                await self._manager.save_message(handle.session_id, user_message)

            return await self._exchange(handle, image_ref=image_ref, assistant_starter=False, on_update=on_update)
        finally:
            self._in_flight.discard(handle.session_id)

    async def send_starter(self, on_update: MessageCallback | None = None) -> ChatMessage | None:
        """Ask the assistant to open the conversation without user input."""
        handle = self._require_ready()
        self._in_flight.add(handle.session_id)
        try:
            return await self._exchange(handle, image_ref=None, assistant_starter=True, on_update=on_update)
        finally:
            self._in_flight.discard(handle.session_id)

    async def _exchange(
        self,
        handle: SessionHandle,
        *,
        image_ref: str | None,
        assistant_starter: bool,
        on_update: MessageCallback | None,
    ) -> ChatMessage | None:
        request = ChatRequest.build(
            list(handle.messages),
            handle.session_id,
            user_id=self._user_id,
            image_url=image_ref,
            assistant_starter=assistant_starter,
            cart_summary=self._cart_summary,
            page_url=self._page_url,
            context=self._context_store.state if self._context_store else None,
        )

        assistant: ChatMessage | None = None

        def on_delta(text: str) -> None:
            nonlocal assistant
            if assistant is None:
                assistant = ChatMessage(role="assistant")
                handle.messages.append(assistant)
            assistant.content = text
            if on_update is not None:
                on_update(assistant)

        try:
            stream = await self._consumer.consume(request, handle.session_id, on_delta)
        except AccessDeniedError:
            self._has_access = False
            raise

        if stream.stats.dropped_frames:
            logger.debug("Dropped %d malformed frames in session %s", stream.stats.dropped_frames, handle.session_id)
        if assistant is not None and self._persist_turns and not stream.stats.stale:
            await self._manager.save_message(handle.session_id, assistant)
        return assistant

    def expandable_positions(self, message: ChatMessage) -> list[int]:
        """Block positions of the collapsible passages in `message`, in order."""
        return [i for i, block in enumerate(self.blocks(message)) if isinstance(block, TruncatableParagraph)]

    def toggle_expanded(self, message_id: str, position: int) -> bool:
        """Flip the expansion of the block at `position`; returns the new value."""
        flags = self._expanded.setdefault(message_id, {})
        flags[position] = not flags.get(position, False)
        return flags[position]

    def blocks(self, message: ChatMessage) -> list[ContentBlock]:
        """Content blocks for displaying `message`.

        Assistant text goes through the full parser; other roles are
        shown as one paragraph with emphasis markers removed.
        """
        if message.role != "assistant":
            return [Paragraph(text=strip_inline_markup(message.content))] if message.content else []
        return parse_content(message.content, dict(self._expanded.get(message.id, {})))
