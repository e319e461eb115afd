from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from tstream.auth.credentials import Credentials
from tstream.config import StreamConfig
from tstream.stream.events import StreamHandlers
from tstream.stream.request import TrackRequest, build_stream_request
from tstream.stream.session import StreamSession
from tstream.transport.base import StreamTransport
from tstream.transport.http import AiohttpTransport

logger = logging.getLogger(__name__)


class StreamClientError(Exception):
    pass


class StreamClient:
    """
    Filter-stream client: one signed long-lived POST at a time.

    Example:
        client = StreamClient(creds, handlers=StreamHandlers(on_data=print))
        session = await client.start("python,asyncio")
        ...
        await session.stop()
    """

    def __init__(
        self,
        credentials: Credentials | Mapping[str, Any],
        *,
        config: StreamConfig | None = None,
        handlers: StreamHandlers | None = None,
        transport: StreamTransport | None = None,
    ) -> None:
        self.credentials = Credentials.from_mapping(credentials)
        self.config = config if config is not None else StreamConfig()
        self.handlers = handlers if handlers is not None else StreamHandlers()
        self._transport = (
            transport
            if transport is not None
            else AiohttpTransport(
                connect_timeout=self.config.connect_timeout,
                keepalive_seconds=self.config.keepalive_seconds,
            )
        )
        self._session: StreamSession | None = None

    @property
    def session(self) -> StreamSession | None:
        return self._session

    async def start(self, track: str) -> StreamSession:
        if self._session is not None and not self._session.closed:
            raise StreamClientError("A stream session is already active; stop it first")

        request = build_stream_request(
            self.credentials,
            TrackRequest(track=track),
            endpoint=self.config.endpoint,
            user_agent=self.config.user_agent,
        )
        session = StreamSession(request, transport=self._transport, handlers=self.handlers)
        self._session = session
        logger.info("Starting stream: track=%r", track)
        session.start()
        return session

    async def track(self, track: str) -> StreamSession:
        return await self.start(track)

    async def stop(self) -> None:
        if self._session is not None:
            await self._session.stop()
