from __future__ import annotations

import asyncio
import logging

from tstream.stream.events import (
    CloseReason,
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
from tstream.stream.request import StreamRequest
from tstream.transport.base import StreamResponse, StreamTransport, TransportError
from tstream.transport.delimited import DataFrame, Frame, FrameDecoder, GarbageFrame

logger = logging.getLogger(__name__)


def _frame_to_event(frame: Frame) -> StreamEvent:
    if isinstance(frame, DataFrame):
        return Data(value=frame.value)
    if isinstance(frame, GarbageFrame):
        return Garbage(raw=frame.raw, reason=frame.reason)
    return Heartbeat()


class StreamSession:
    """
    One live stream connection.

    Lifecycle:
    - run(): open the request, emit Connected on HTTP 200, then decode the body
      into Heartbeat / Data / Garbage events until the connection ends
    - non-200: one ErrorEvent(phase="response"), no decoding
    - request failure: one ErrorEvent(phase="request")
    - body ends: Closed("normal end"); connection drops: ErrorEvent then Closed("peer close")
    - stop(): abort immediately; Closed("stopped") if still open, or the reason
      already decided when the session was ending on its own

    There is no retry; reconnecting means starting a new session.
    """

    def __init__(
        self,
        request: StreamRequest,
        *,
        transport: StreamTransport,
        handlers: StreamHandlers,
    ) -> None:
        self.request = request
        self._transport = transport
        self._handlers = handlers
        self._decoder = FrameDecoder()
        self._response: StreamResponse | None = None
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._stopped = False
        self._close_emitted = False
        self._aborted = False
        self._ending: CloseReason | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def response(self) -> StreamResponse | None:
        return self._response

    def start(self) -> asyncio.Task[None]:
        if self._task is not None:
            return self._task
        self._task = asyncio.create_task(self.run(), name="tstream-session")
        return self._task

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def stop(self) -> None:
        """Abort the connection now. Safe to call repeatedly or after the stream ended."""
        if self._stopped:
            return
        self._stopped = True
        was_open = self._task is not None and not self._closed
        logger.debug("Stopping stream session")

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            # A session already tearing itself down is left to finish.
            if self._ending is None:
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._abort()
        self._closed = True
        if was_open:
            await self._emit_close(self._ending or "stopped")

    async def run(self) -> None:
        try:
            await self._run()
        finally:
            self._closed = True
            if not self._stopped:
                await self._abort()

    async def _run(self) -> None:
        req = self.request
        try:
            response = await self._transport.open(
                method=req.method,
                url=req.url,
                headers=req.headers,
                body=req.body,
            )
        except TransportError as e:
            logger.warning("Stream request failed: %s", e)
            # Never opened: no Closed event, even if a handler calls stop().
            self._closed = True
            await self._emit(
                ErrorEvent(
                    phase="request",
                    error=StreamError(kind="transport", message=str(e), cause=e.__cause__ or e),
                    request=req,
                )
            )
            return

        self._response = response
        if response.status != 200:
            logger.warning("Stream rejected: HTTP %s %s", response.status, response.reason or "")
            self._closed = True
            await self._emit(
                ErrorEvent(
                    phase="response",
                    error=StreamError(
                        kind="protocol",
                        message=f"HTTP {response.status} {response.reason or ''}".strip(),
                    ),
                    status_code=response.status,
                    request=req,
                    response=response,
                )
            )
            return

        logger.info("Stream connected: %s", req.url)
        await self._emit(Connected(response=response))

        try:
            async for chunk in response.chunks():
                for frame in self._decoder.feed(chunk):
                    if self._stopped:
                        return
                    await self._emit(_frame_to_event(frame))
        except TransportError as e:
            logger.warning("Stream response failed: %s", e)
            self._ending = "peer close"
            await self._emit(
                ErrorEvent(
                    phase="response",
                    error=StreamError(kind="transport", message=str(e), cause=e.__cause__ or e),
                    request=req,
                    response=response,
                )
            )
            # A dropped connection does not tear the request down by itself.
            await self._abort()
            await self._emit_close("peer close")
            return

        await self._emit_close("normal end")

    async def _abort(self) -> None:
        if self._response is None or self._aborted:
            return
        self._aborted = True
        try:
            await self._response.abort()
        except Exception as ex:  # noqa: BLE001
            logger.info("Stream abort failed; ignoring", exc_info=ex)

    async def _emit_close(self, reason: CloseReason) -> None:
        if self._close_emitted:
            return
        self._ending = reason
        self._close_emitted = True
        await self._emit(Closed(reason=reason))

    async def _emit(self, event: StreamEvent) -> None:
        await self._handlers.dispatch(event)
