from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from tstream.auth.credentials import Credentials
from tstream.auth.oauth1 import (
    AuthParams,
    authorization_header,
    encode_form,
    make_auth_params,
    sign,
)
from tstream.transport.base import Endpoint

logger = logging.getLogger(__name__)

STREAM_METHOD = "POST"
DEFAULT_ENDPOINT = Endpoint(host="stream.twitter.com", port=443, path="/1.1/statuses/filter.json")


@dataclass(frozen=True, slots=True)
class TrackRequest:
    """
    Body of a filter request.

    `track` is a comma-separated phrase list (commas are OR, spaces are AND).
    Phrase limits are enforced by the server, not here.
    """

    track: str
    delimited: str = "length"

    def params(self) -> dict[str, str]:
        return {"delimited": self.delimited, "track": self.track}

    def encode(self) -> str:
        return encode_form(self.params().items())


@dataclass(frozen=True, slots=True)
class StreamRequest:
    """
    Everything needed to open one stream, built fresh for every start.

    Never mutated after construction; headers are exposed read-only.
    """

    method: str
    url: str
    body: bytes
    auth: AuthParams
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def authorization(self) -> str:
        return self.headers["Authorization"]


def build_stream_request(
    credentials: Credentials,
    track: TrackRequest,
    *,
    endpoint: Endpoint = DEFAULT_ENDPOINT,
    user_agent: str = "tstream",
    nonce: str | None = None,
    timestamp: int | None = None,
) -> StreamRequest:
    """
    Build a signed stream request.

    The body is fixed first, then a fresh nonce/timestamp is drawn and the
    signature is computed over both; nothing is reused between calls.
    """

    body = track.encode().encode("utf-8")
    unsigned = make_auth_params(credentials, nonce=nonce, timestamp=timestamp)
    signature = sign(credentials, unsigned, track.params(), STREAM_METHOD, endpoint.url)
    auth = unsigned.signed(signature)

    headers = MappingProxyType(
        {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "*/*",
            "User-Agent": user_agent,
            "Authorization": authorization_header(auth),
            "Content-Length": str(len(body)),
            "Connection": "keep-alive",
        }
    )
    logger.debug("Built stream request: %s %s body=%s", STREAM_METHOD, endpoint.url, body)
    return StreamRequest(
        method=STREAM_METHOD,
        url=endpoint.url,
        body=body,
        auth=auth,
        headers=headers,
    )
