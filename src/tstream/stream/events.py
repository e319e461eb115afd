from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

Phase = Literal["request", "response"]
ErrorKind = Literal["transport", "protocol"]
CloseReason = Literal["normal end", "peer close", "stopped"]


@dataclass(frozen=True, slots=True)
class StreamError:
    """Error value handed to handlers; the session never raises these."""

    kind: ErrorKind
    message: str
    cause: BaseException | None = None

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} ::: {type(self.cause).__name__}: {self.cause}"


@dataclass(frozen=True, slots=True)
class Connected:
    response: Any


@dataclass(frozen=True, slots=True)
class Heartbeat:
    pass


@dataclass(frozen=True, slots=True)
class Data:
    value: Any


@dataclass(frozen=True, slots=True)
class Garbage:
    raw: str
    reason: str = "payload"


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    phase: Phase
    error: StreamError
    status_code: int | None = None
    request: Any = None
    response: Any = None

    @property
    def cause(self) -> BaseException | None:
        return self.error.cause


@dataclass(frozen=True, slots=True)
class Closed:
    reason: CloseReason


StreamEvent = Connected | Heartbeat | Data | Garbage | ErrorEvent | Closed

Handler = Callable[[Any], Awaitable[None] | None]


@dataclass(slots=True)
class StreamHandlers:
    """
    One optional callback per event kind.

    Callbacks may be plain functions or coroutines. Kinds without a callback
    are logged. A failing callback is logged and the stream keeps going.
    """

    on_connected: Handler | None = None
    on_heartbeat: Handler | None = None
    on_data: Handler | None = None
    on_garbage: Handler | None = None
    on_error: Handler | None = None
    on_close: Handler | None = None

    def handler_for(self, event: StreamEvent) -> Handler | None:
        if isinstance(event, Connected):
            return self.on_connected
        if isinstance(event, Heartbeat):
            return self.on_heartbeat
        if isinstance(event, Data):
            return self.on_data
        if isinstance(event, Garbage):
            return self.on_garbage
        if isinstance(event, ErrorEvent):
            return self.on_error
        if isinstance(event, Closed):
            return self.on_close
        raise TypeError(f"Unknown stream event: {event!r}")

    async def dispatch(self, event: StreamEvent) -> None:
        handler = self.handler_for(event)
        if handler is None:
            _log_event(event)
            return
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            logger.exception("Stream handler for %s failed; ignoring", type(event).__name__)


def _log_event(event: StreamEvent) -> None:
    if isinstance(event, ErrorEvent):
        logger.error(
            "Stream error (phase=%s, status=%s): %s", event.phase, event.status_code, event.error
        )
    elif isinstance(event, Closed):
        logger.info("Stream closed: %s", event.reason)
    elif isinstance(event, Garbage):
        logger.debug("Garbage frame (%s): %r", event.reason, event.raw[:200])
    else:
        logger.debug("Stream event: %s", type(event).__name__)
