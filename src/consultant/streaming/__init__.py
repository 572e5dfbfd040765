from .consumer import StreamConsumer
from .models import ChatRequest, StreamingResponse, StreamStats, TurnPayload
from .sse import LineBuffer, MalformedFrameError, iter_deltas, parse_frame

__all__ = [
    "ChatRequest",
    "LineBuffer",
    "MalformedFrameError",
    "StreamConsumer",
    "StreamStats",
    "StreamingResponse",
    "TurnPayload",
    "iter_deltas",
    "parse_frame",
]
