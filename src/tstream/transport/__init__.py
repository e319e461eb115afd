from .base import Endpoint, StreamResponse, StreamTransport, TransportError
from .delimited import (
    DataFrame,
    DecoderState,
    Frame,
    FrameDecoder,
    GarbageFrame,
    HeartbeatFrame,
)
from .http import AiohttpResponse, AiohttpTransport

__all__ = [
    "AiohttpResponse",
    "AiohttpTransport",
    "DataFrame",
    "DecoderState",
    "Endpoint",
    "Frame",
    "FrameDecoder",
    "GarbageFrame",
    "HeartbeatFrame",
    "StreamResponse",
    "StreamTransport",
    "TransportError",
]
