from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Protocol


class TransportError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class Endpoint:
    host: str
    port: int
    path: str

    @property
    def url(self) -> str:
        """Base URL as covered by the OAuth signature (default port omitted)."""
        if self.port == 443:
            return f"https://{self.host}{self.path}"
        return f"https://{self.host}:{self.port}{self.path}"


class StreamResponse(Protocol):
    """
    An open streaming response.

    - status: HTTP status code
    - chunks(): raw body chunks in arrival order, ends at EOF
    - abort(): tear the connection down; safe to call repeatedly
    """

    status: int
    reason: str | None

    def chunks(self) -> AsyncIterator[bytes]: ...
    async def abort(self) -> None: ...


class StreamTransport(Protocol):
    """
    Opens one long-lived POST per call.

    Implementations raise TransportError when the request cannot be made.
    """

    async def open(
        self,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
    ) -> StreamResponse: ...
