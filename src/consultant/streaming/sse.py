"""Server-sent event framing for chat responses.

Hides the wire format: newline-delimited frames, `data: ` prefixed
JSON records carrying `choices[0].delta.content`, `:` heartbeats and
the `data: [DONE]` sentinel.
"""

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from .models import StreamStats

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


class MalformedFrameError(ValueError):
    """A data frame whose payload is not valid JSON."""


class LineBuffer:
    """Turns byte chunks into complete text lines.

    Multi-byte characters split across chunks are carried over by an
    incremental decoder; the trailing unterminated line is held back
    until its newline arrives.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._pending

    def feed(self, chunk: bytes) -> list[str]:
        """Decode `chunk` and return the lines it completed."""
        text = self._decoder.decode(chunk)
        if not text:
            return []
        *lines, self._pending = (self._pending + text).split("\n")
        return [line.removesuffix("\r") for line in lines]

    def close(self) -> str:
        """End of stream: return and forget the unterminated remainder."""
        leftover = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return leftover


def extract_delta(record: Any) -> str | None:
    """Pull the incremental text out of a decoded frame record."""
    if not isinstance(record, dict):
        return None
    choices = record.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) and content else None


def parse_frame(line: str) -> str | None:
    """Return the text delta carried by one complete line, if any.

    Raises:
        MalformedFrameError: If a data frame's payload is not valid JSON
    """
    if not line or line.startswith(":"):
        return None
    if line == DONE_SENTINEL:
        return None
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    try:
        record = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(payload) from e
    return extract_delta(record)


async def iter_deltas(
    chunks: AsyncIterable[bytes],
    stats: StreamStats | None = None,
) -> AsyncIterator[str]:
    """Yield text deltas from a byte stream, in arrival order.

    Malformed frames are dropped one line at a time; the stream keeps
    going. A final line without a terminating newline is discarded.
    """
    buffer = LineBuffer()
    async for chunk in chunks:
        for line in buffer.feed(chunk):
            try:
                delta = parse_frame(line)
            except MalformedFrameError:
                if stats is not None:
                    stats.dropped_frames += 1
                logger.debug("Dropped malformed frame: %.80s", line)
                continue
            if delta:
                yield delta

    leftover = buffer.close()
    if leftover:
        logger.debug("Discarded unterminated frame at end of stream: %.80s", leftover)
