"""Pytest configuration and shared fixtures."""
import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from consultant.sessions import InMemoryKeyValueStore, SessionManager
from consultant.sessions.in_memory import InMemorySessionStore
from consultant.streaming import StreamConsumer

CHAT_URL = "https://consultant.test/functions/v1/chat"


def _frame(text: str) -> bytes:
    payload = {"choices": [{"delta": {"content": text}}]}
    return f"data: {json.dumps(payload)}\n\n".encode()


@pytest.fixture
def sse_frame() -> Callable[[str], bytes]:
    """Return a function encoding one text delta as an SSE frame."""
    return _frame


@pytest.fixture
def sse_body():
    """Return a function turning byte chunks into an async body iterator."""

    def _body(*chunks: bytes) -> AsyncIterator[bytes]:
        async def _gen():
            for chunk in chunks:
                yield chunk
        return _gen()

    return _body


@pytest.fixture
def session_store():
    """Return an in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def key_store():
    """Return an empty in-memory key mapping."""
    return InMemoryKeyValueStore()


@pytest.fixture
def manager(session_store, key_store):
    """Return a session manager over in-memory collaborators."""
    return SessionManager(session_store, key_store, owner_id="user-1")


@pytest.fixture
def make_consumer():
    """Return a factory for consumers backed by an httpx MockTransport.

    `handler` receives the httpx.Request and returns an httpx.Response.
    Every request seen is appended to the returned `requests` list.
    """

    def _make(handler, active_session: Callable[[], str | None]):
        requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
        consumer = StreamConsumer(CHAT_URL, active_session=active_session, access_token="token-1", client=client)
        return consumer, requests

    return _make
