from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping

import aiohttp

from .base import TransportError

logger = logging.getLogger(__name__)


class AiohttpResponse:
    """Streaming response bound to its own aiohttp session and connection."""

    def __init__(self, session: aiohttp.ClientSession, response: aiohttp.ClientResponse) -> None:
        self._session = session
        self._response = response
        self._aborted = False

    @property
    def status(self) -> int:
        return self._response.status

    @property
    def reason(self) -> str | None:
        return self._response.reason

    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers

    @property
    def raw(self) -> aiohttp.ClientResponse:
        return self._response

    async def chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.content.iter_any():
                yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            if self._aborted:
                return
            raise TransportError("Stream response failed") from e

    async def abort(self) -> None:
        if self._aborted:
            return
        self._aborted = True
        # close() drops the connection instead of returning it to a pool.
        self._response.close()
        await self._session.close()


class AiohttpTransport:
    """
    One pinned connection per stream.

    Each open() builds its own ClientSession over a single-connection
    TCPConnector, so the long-lived socket is never shared with or recycled
    by another request. No total timeout: the body stays open indefinitely.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = 10.0,
        keepalive_seconds: float = 10.0,
        ssl: bool = True,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._keepalive_seconds = keepalive_seconds
        self._ssl = ssl

    async def open(
        self,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
    ) -> AiohttpResponse:
        connector = aiohttp.TCPConnector(
            limit=1,
            keepalive_timeout=self._keepalive_seconds,
            ssl=self._ssl,
        )
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self._connect_timeout,
            sock_read=None,
        )
        session = aiohttp.ClientSession(connector=connector, timeout=timeout)
        try:
            response = await session.request(
                method,
                url,
                headers=dict(headers),
                data=body,
                allow_redirects=False,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            await session.close()
            raise TransportError(f"{method} {url} failed") from e
        except BaseException:
            await session.close()
            raise
        logger.debug("%s %s -> %s %s", method, url, response.status, response.reason)
        return AiohttpResponse(session, response)
