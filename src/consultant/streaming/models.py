"""Data models for streaming chat requests and responses."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_PREFERENCES
from ..sessions.models import ChatMessage, ConversationState


class TurnPayload(BaseModel):
    """One turn of history as sent to the chat backend."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")
    image_url: str | None = Field(default=None, description="Attached image reference")

    @classmethod
    def from_message(cls, message: ChatMessage) -> "TurnPayload":
        return cls(role=message.role, content=message.content, image_url=message.image_ref)


class ChatRequest(BaseModel):
    """Body of an outgoing chat request.

    Carries the full ordered turn history, the target session, and
    whether the turn was started by the user or is an assistant starter.
    """

    messages: list[TurnPayload] = Field(default_factory=list)
    session_id: str
    user_id: str | None = None
    image_url: str | None = None
    assistant_starter: bool = False
    preferences: dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_PREFERENCES))
    cart_context: dict[str, Any] | None = None
    product_context: dict[str, Any] | None = None
    page_url: str | None = None
    browsing_history: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        history: list[ChatMessage],
        session_id: str,
        *,
        user_id: str | None = None,
        image_url: str | None = None,
        assistant_starter: bool = False,
        cart_summary: str | None = None,
        page_url: str | None = None,
        context: ConversationState | None = None,
    ) -> "ChatRequest":
        """Assemble a request from the session history and browsing context."""
        product_context = None
        browsing_history: list[dict[str, Any]] = []
        if context is not None:
            if context.last_product is not None:
                product_context = context.last_product.model_dump(exclude_none=True)
            browsing_history = [p.model_dump(exclude_none=True) for p in context.browsing_history]

        return cls(
            messages=[TurnPayload.from_message(m) for m in history],
            session_id=session_id,
            user_id=user_id,
            image_url=image_url,
            assistant_starter=assistant_starter,
            cart_context={"summary": cart_summary} if cart_summary else None,
            product_context=product_context,
            page_url=page_url,
            browsing_history=browsing_history,
        )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready request body."""
        return self.model_dump(mode="json")


@dataclass
class StreamStats:
    """Counters collected while a response streams."""

    deltas: int = 0
    dropped_frames: int = 0
    stale: bool = False


class StreamingResponse:
    """Async iterator over accumulated-text snapshots of one response.

    Each item is the full assistant text received so far, so a renderer
    can always replace the message content wholesale.

    Usage:
        stream = consumer.stream(request, session_id)
        async for text in stream:
            render(text)
        print(stream.text, stream.stats.dropped_frames)
    """

    def __init__(self, async_iter: AsyncIterator[str], stats: StreamStats):
        self._iter = async_iter
        self._stats = stats
        self._text = ""

    @property
    def stats(self) -> StreamStats:
        """Stream counters (complete after iteration finishes)."""
        return self._stats

    @property
    def text(self) -> str:
        """Last snapshot handed out."""
        return self._text

    def __aiter__(self) -> "StreamingResponse":
        return self

    async def __anext__(self) -> str:
        self._text = await self._iter.__anext__()
        return self._text

    async def aclose(self) -> None:
        """Stop iterating and release the underlying connection."""
        aclose = getattr(self._iter, "aclose", None)
        if aclose is not None:
            await aclose()
