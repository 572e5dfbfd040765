"""
Consultant: the conversational chat engine behind the AI business consultant.

Each subpackage hides one design decision: how sessions are persisted,
how streamed responses are framed, and how assistant text becomes
renderable content blocks.
"""

__version__ = "0.1.0"

from .access import AccessGate, StaticAccessGate
from .content import ContentBlock, parse_content
from .engine import ChatEngine
from .exceptions import (
    AccessDeniedError,
    ConsultantError,
    ReauthenticationRequiredError,
    SessionCreationError,
    SessionStoreError,
)
from .sessions import ChatMessage, SessionManager, create_session_store
from .startup import StartupDecision, resolve_startup_mode
from .streaming import ChatRequest, StreamConsumer

__all__ = [
    "AccessDeniedError",
    "AccessGate",
    "ChatEngine",
    "ChatMessage",
    "ChatRequest",
    "ConsultantError",
    "ContentBlock",
    "ReauthenticationRequiredError",
    "SessionCreationError",
    "SessionManager",
    "SessionStoreError",
    "StartupDecision",
    "StaticAccessGate",
    "StreamConsumer",
    "create_session_store",
    "parse_content",
    "resolve_startup_mode",
]
