"""Conversation session module.

Provides session identity, persistence backends and the key mapping
used to find the active session of a chat surface.
"""

from .base import SessionStore
from .factory import create_session_store
from .keystore import ConversationStateStore, InMemoryKeyValueStore, KeyValueStore
from .manager import SessionManager
from .models import (
    ArchiveGroup,
    ChatMessage,
    ConversationSession,
    ConversationState,
    HydrationState,
    MessageLoad,
    ProductContext,
    SessionHandle,
)

__all__ = [
    "ArchiveGroup",
    "ChatMessage",
    "ConversationSession",
    "ConversationState",
    "ConversationStateStore",
    "HydrationState",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "MessageLoad",
    "ProductContext",
    "SessionHandle",
    "SessionManager",
    "SessionStore",
    "create_session_store",
]
