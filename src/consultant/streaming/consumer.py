"""Streaming response consumer.

Hidden design decisions:
- HTTP client setup and authentication headers
- Mapping of status codes onto access and sign-in conditions
- Incremental frame decoding (delegated to `sse`)
- Detaching from a response once its session is no longer active
"""

import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx

from ..config import REQUEST_TIMEOUT_SECONDS
from ..exceptions import AccessDeniedError, ReauthenticationRequiredError, StreamRequestError
from .models import ChatRequest, StreamingResponse, StreamStats
from .sse import iter_deltas

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], Awaitable[None] | None]

ACCESS_DENIED_STATUSES = {402, 403}


def _error_code(body: str) -> str | None:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    code = data.get("code") if isinstance(data, dict) else None
    return code if isinstance(code, str) else None


class StreamConsumer:
    """Drives one chat request and turns its body into text snapshots.

    Supports async context manager protocol for client cleanup:
        async with StreamConsumer(url, active_session=...) as consumer:
            await consumer.consume(request, session_id, on_delta)
    """

    def __init__(
        self,
        url: str,
        active_session: Callable[[], str | None],
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        """Initialize the consumer.

        Args:
            url: Chat endpoint accepting POSTed `ChatRequest` bodies
            active_session: Returns the caller's currently active session id
            access_token: Bearer token sent with every request
            client: Optional pre-configured httpx client (not closed by us)
            timeout: Request timeout when the client is created here
        """
        self._url = url
        self._active_session = active_session
        self._access_token = access_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _check_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        if response.status_code == 401:
            raise ReauthenticationRequiredError("Sign in again to continue the conversation")

        body = (await response.aread()).decode("utf-8", errors="replace")
        if response.status_code in ACCESS_DENIED_STATUSES:
            raise AccessDeniedError(code=_error_code(body))
        raise StreamRequestError(response.status_code, body)

    def stream(self, request: ChatRequest, target_session_id: str) -> StreamingResponse:
        """Start a request and return an iterator of accumulated snapshots.

        Raises (on first iteration):
            ReauthenticationRequiredError: On HTTP 401
            AccessDeniedError: On HTTP 402/403
            StreamRequestError: On any other non-success status
            httpx.HTTPError: On transport failures
        """
        stats = StreamStats()
        return StreamingResponse(self._snapshots(request, target_session_id, stats), stats)

    async def _snapshots(
        self,
        request: ChatRequest,
        target_session_id: str,
        stats: StreamStats,
    ) -> AsyncIterator[str]:
        async with self._client.stream(
            "POST", self._url, json=request.to_payload(), headers=self._headers()
        ) as response:
            await self._check_status(response)

            accumulated = ""
            async for delta in iter_deltas(response.aiter_bytes(), stats):
                if stats.stale:
                    continue
                if self._active_session() != target_session_id:
                    # Keep draining so the connection is released cleanly.
                    stats.stale = True
                    logger.debug("Session %s is no longer active; detaching stream", target_session_id)
                    continue
                accumulated += delta
                stats.deltas += 1
                yield accumulated

    async def consume(
        self,
        request: ChatRequest,
        target_session_id: str,
        on_delta: DeltaCallback,
    ) -> StreamingResponse:
        """Run a request to completion, calling `on_delta` with each snapshot.

        `on_delta` receives the full text accumulated so far and may be
        a plain function or a coroutine function. The response is
        released even when `on_delta` raises.

        Returns:
            The exhausted StreamingResponse (text and stats)
        """
        stream = self.stream(request, target_session_id)
        try:
            async for snapshot in stream:
                result = on_delta(snapshot)
                if inspect.isawaitable(result):
                    await result
        finally:
            await stream.aclose()
        return stream

    async def close(self) -> None:
        """Close the HTTP client if this consumer created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "StreamConsumer":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
