"""Data models for conversation sessions.

These models define the structure of sessions, messages and the
persisted browsing context, independent of the storage backend used.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..config import BROWSING_HISTORY_LIMIT, DEFAULT_SESSION_TITLE
from ..exceptions import SessionStoreError


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """A single turn in a conversation.

    `content` of the in-flight assistant message is replaced wholesale
    while a response streams; every other field is fixed at creation.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: Literal["user", "assistant", "system"] = Field(
        description="Role of the message sender"
    )
    content: str = Field(default="", description="UTF-8 message text")
    image_ref: str | None = Field(default=None, description="Attached image reference")
    created_at: datetime = Field(default_factory=utcnow)


class ConversationSession(BaseModel):
    """A persisted conversation between a user and the assistant."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str | None = None
    title: str = DEFAULT_SESSION_TITLE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None

    @property
    def last_active(self) -> datetime:
        """Timestamp used for ordering and day grouping."""
        return self.updated_at or self.created_at


class HydrationState(str, Enum):
    """Lifecycle of the active session for one logical key."""

    UNINITIALIZED = "uninitialized"
    HYDRATING = "hydrating"
    HYDRATED = "hydrated"


@dataclass
class SessionHandle:
    """The active session of a chat surface and its in-memory messages."""

    key: str
    session_id: str
    messages: list[ChatMessage] = field(default_factory=list)
    load_error: SessionStoreError | None = None

    @property
    def message_count(self) -> int:
        return len(self.messages)


@dataclass
class MessageLoad:
    """Result of loading a session's messages.

    On a transient failure `messages` holds the previous in-memory list
    and `error` carries the cause.
    """

    messages: list[ChatMessage]
    error: SessionStoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ArchiveGroup:
    """Sessions that were last active on the same local calendar day."""

    day: date
    sessions: list[ConversationSession] = field(default_factory=list)


class ProductContext(BaseModel):
    """A product the user looked at, sent along as conversation context."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    brand: str | None = None
    category: str | None = None
    price: float | None = None
    attributes: dict[str, Any] | None = None
    image_url: str | None = None
    url: str | None = None


class ConversationState(BaseModel):
    """Client-side conversation state persisted across runs.

    Holds the logical-key to session-id mapping together with the
    browsing context forwarded to the assistant.
    """

    last_session_by_key: dict[str, str] = Field(default_factory=dict)
    last_product: ProductContext | None = None
    browsing_history: list[ProductContext] = Field(default_factory=list)

    def apply_current_product(self, product: ProductContext) -> "ConversationState":
        """Return a new state with `product` promoted to the front of the history.

        Entries with the same id are replaced, and the history is capped.
        """
        existing = [p for p in self.browsing_history if p.id != product.id]
        history = [product, *existing][:BROWSING_HISTORY_LIMIT]
        return self.model_copy(update={"last_product": product, "browsing_history": history})
