from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Protocol

import aiohttp

from tstream.auth.oauth1 import percent_encode

logger = logging.getLogger(__name__)

TOKEN_URL = "https://api.twitter.com/oauth2/token"
TOKEN_BODY = "grant_type=client_credentials"


class TokenError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class TokenResponse:
    status: int
    body: str


class TokenHttp(Protocol):
    async def post(self, url: str, *, headers: dict[str, str], body: str) -> TokenResponse: ...


class AiohttpTokenHttp:
    def __init__(self, *, timeout: float = 20.0) -> None:
        self._timeout = timeout

    async def post(self, url: str, *, headers: dict[str, str], body: str) -> TokenResponse:
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, headers=headers, data=body.encode("utf-8")) as resp:
                    return TokenResponse(status=resp.status, body=await resp.text())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TokenError(f"Token request to {url} failed") from e


class BearerTokenProvider:
    """
    App-only bearer token, fetched once and cached until `expire()`.

    Not used by the signed stream itself; it serves the application-only auth mode.
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        *,
        url: str = TOKEN_URL,
        http: TokenHttp | None = None,
        user_agent: str = "tstream",
    ) -> None:
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._url = url
        self._http = http if http is not None else AiohttpTokenHttp()
        self._user_agent = user_agent
        self._token: str | None = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def basic_authorization(self) -> str:
        raw = f"{percent_encode(self._consumer_key)}:{percent_encode(self._consumer_secret)}"
        return "Basic " + base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def expire(self) -> None:
        self._token = None

    async def get_token(self) -> str:
        if self._token is not None:
            return self._token
        async with self._lock:
            # Another caller may have fetched while we waited.
            if self._token is None:
                self._token = await self._request_token()
            return self._token

    async def _request_token(self) -> str:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded;charset=UTF-8",
            "Accept": "*/*",
            "User-Agent": self._user_agent,
            "Authorization": self.basic_authorization,
        }
        resp = await self._http.post(self._url, headers=headers, body=TOKEN_BODY)
        if resp.status != 200:
            raise TokenError(f"Token endpoint returned HTTP {resp.status}")
        try:
            data = json.loads(resp.body)
        except json.JSONDecodeError as e:
            raise TokenError("Token endpoint returned invalid JSON") from e
        if not isinstance(data, dict):
            raise TokenError("Token endpoint returned unexpected JSON shape")
        token_type = data.get("token_type")
        if isinstance(token_type, str) and token_type.lower() != "bearer":
            raise TokenError(f"Unexpected token_type: {token_type!r}")
        token = data.get("access_token")
        if not isinstance(token, str) or not token:
            raise TokenError("Token endpoint response has no access_token")
        logger.info("Obtained app-only bearer token")
        return token
