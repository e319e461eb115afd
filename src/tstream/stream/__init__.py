from .client import StreamClient, StreamClientError
from .events import (
    Closed,
    Connected,
    Data,
    ErrorEvent,
    Garbage,
    Heartbeat,
    StreamError,
    StreamEvent,
    StreamHandlers,
)
from .request import StreamRequest, TrackRequest, build_stream_request
from .session import StreamSession

__all__ = [
    "Closed",
    "Connected",
    "Data",
    "ErrorEvent",
    "Garbage",
    "Heartbeat",
    "StreamClient",
    "StreamClientError",
    "StreamError",
    "StreamEvent",
    "StreamHandlers",
    "StreamRequest",
    "StreamSession",
    "TrackRequest",
    "build_stream_request",
]
