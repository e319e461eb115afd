from __future__ import annotations

import enum
import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)
wire_logger = logging.getLogger("tstream.wire")

CRLF = b"\r\n"

# A length prefix is a handful of decimal digits; anything longer without a
# CRLF cannot be a prefix.
MAX_PREFIX_BYTES = 16

# Larger declared lengths are treated as a corrupt prefix.
MAX_FRAME_BYTES = 1 << 20

GarbageReason = Literal["length", "payload"]


@dataclass(frozen=True, slots=True)
class HeartbeatFrame:
    pass


@dataclass(frozen=True, slots=True)
class DataFrame:
    value: Any
    raw: bytes


@dataclass(frozen=True, slots=True)
class GarbageFrame:
    raw: str
    reason: GarbageReason = "payload"


Frame = HeartbeatFrame | DataFrame | GarbageFrame


class DecoderState(enum.Enum):
    AWAITING_LENGTH = "awaiting_length"
    ACCUMULATING_PAYLOAD = "accumulating_payload"


def classify_payload(payload: bytes) -> DataFrame | GarbageFrame:
    try:
        value = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return GarbageFrame(raw=payload.decode("utf-8", "replace"), reason="payload")
    return DataFrame(value=value, raw=payload)


class FrameDecoder:
    """
    Incremental decoder for `delimited=length` streams.

    Wire format:
    - "<decimal length>\\r\\n" followed by exactly `length` payload bytes
    - a bare "\\r\\n" between frames is a keep-alive heartbeat

    Chunk boundaries carry no meaning: a chunk may hold part of a frame, one
    frame, or several. Bytes past the end of the current frame are kept and
    decoded as the start of the next one.

    Malformed or oversized prefixes and unparseable payloads come out as
    GarbageFrame; feed() never raises on input content.
    """

    __slots__ = ("_pending", "_buffer", "_next_frame_length", "_max_frame_bytes")

    def __init__(self, *, max_frame_bytes: int = MAX_FRAME_BYTES) -> None:
        self._max_frame_bytes = max_frame_bytes
        self._pending = bytearray()
        self._buffer = bytearray()
        self._next_frame_length = 0

    @property
    def state(self) -> DecoderState:
        if self._next_frame_length == 0:
            return DecoderState.AWAITING_LENGTH
        return DecoderState.ACCUMULATING_PAYLOAD

    @property
    def next_frame_length(self) -> int:
        return self._next_frame_length

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def feed(self, chunk: bytes | bytearray | str) -> Iterator[Frame]:
        """
        Consume one chunk and yield every frame it completes, in order.

        Frames are produced lazily; the chunk is appended immediately, so
        unconsumed frames are picked up by the next feed() call.
        """

        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        wire_logger.debug("chunk (%d bytes): %r", len(chunk), bytes(chunk))
        self._pending.extend(chunk)
        return self._drain()

    def feed_all(self, chunk: bytes | bytearray | str) -> list[Frame]:
        return list(self.feed(chunk))

    def _drain(self) -> Iterator[Frame]:
        while self._pending:
            if self._next_frame_length == 0:
                frame = self._read_prefix()
                if frame is None and self._next_frame_length == 0:
                    return
                if frame is not None:
                    yield frame
                continue

            need = self._next_frame_length - len(self._buffer)
            take = min(need, len(self._pending))
            self._buffer.extend(self._pending[:take])
            del self._pending[:take]
            if len(self._buffer) < self._next_frame_length:
                return

            payload = bytes(self._buffer)
            self._buffer.clear()
            self._next_frame_length = 0
            frame = classify_payload(payload)
            if isinstance(frame, GarbageFrame):
                logger.debug("Unparseable payload of %d bytes", len(payload))
            yield frame

    def _read_prefix(self) -> Frame | None:
        """
        Parse a heartbeat or a length prefix from the front of pending bytes.

        Returns a frame (heartbeat or garbage), or None when a length was
        accepted or more bytes are needed.
        """

        if self._pending.startswith(CRLF):
            del self._pending[: len(CRLF)]
            return HeartbeatFrame()

        end = self._pending.find(CRLF)
        if end < 0:
            if len(self._pending) > MAX_PREFIX_BYTES:
                raw = bytes(self._pending).decode("utf-8", "replace")
                self._pending.clear()
                logger.warning("Discarding %d bytes without a length prefix", len(raw))
                return GarbageFrame(raw=raw, reason="length")
            return None

        prefix = bytes(self._pending[:end])
        del self._pending[: end + len(CRLF)]
        text = prefix.decode("ascii", "replace").strip()
        if text.isdigit() and 0 < int(text) <= self._max_frame_bytes:
            self._next_frame_length = int(text)
            return None

        logger.warning("Invalid length prefix: %r", prefix)
        return GarbageFrame(raw=prefix.decode("utf-8", "replace"), reason="length")
