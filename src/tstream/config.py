from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tstream.auth.credentials import Credentials, CredentialsError
from tstream.transport.base import Endpoint

ENV_PREFIX = "TSTREAM_"


class ConfigError(Exception):
    pass


@dataclass(slots=True)
class StreamConfig:
    host: str = "stream.twitter.com"
    port: int = 443
    path: str = "/1.1/statuses/filter.json"
    user_agent: str = "tstream"
    connect_timeout: float = 10.0
    keepalive_seconds: float = 10.0
    log_level: str = "INFO"
    track: str = ""
    credentials: Credentials | None = field(default=None, repr=False)

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(host=self.host, port=self.port, path=self.path)

    def require_credentials(self) -> Credentials:
        if self.credentials is None:
            raise ConfigError(
                "No credentials configured (config file or TSTREAM_CONSUMER_KEY etc.)"
            )
        return self.credentials


def _as_int(value: Any, *, default: int, min_value: int | None = None) -> int:
    if value is None:
        out = default
    elif isinstance(value, bool):
        out = int(value)
    elif isinstance(value, (int, float)):
        out = int(value)
    elif isinstance(value, str):
        try:
            out = int(value.strip())
        except ValueError:
            out = default
    else:
        out = default
    if min_value is not None and out < min_value:
        return min_value
    return out


def _as_float(value: Any, *, default: float, min_value: float | None = None) -> float:
    if value is None or isinstance(value, bool):
        out = default
    elif isinstance(value, (int, float)):
        out = float(value)
    elif isinstance(value, str):
        try:
            out = float(value.strip())
        except ValueError:
            out = default
    else:
        out = default
    if min_value is not None and out < min_value:
        return min_value
    return out


def _as_str(value: Any, *, default: str) -> str:
    if not isinstance(value, str):
        return default
    v = value.strip()
    return v or default


def _credentials_or_none(data: Mapping[str, Any]) -> Credentials | None:
    keys = {
        "consumer",
        "access",
        "consumer_key",
        "consumerKey",
        "consumer_secret",
        "consumerSecret",
        "access_token",
        "accessToken",
        "access_token_secret",
        "accessTokenSecret",
    }
    if not keys.intersection(data):
        return None
    try:
        return Credentials.from_mapping(data)
    except CredentialsError as e:
        raise ConfigError(str(e)) from e


def config_from_mapping(data: Mapping[str, Any]) -> StreamConfig:
    d = StreamConfig()
    creds_obj = data.get("credentials")
    creds_src = creds_obj if isinstance(creds_obj, Mapping) else data
    return StreamConfig(
        host=_as_str(data.get("host"), default=d.host),
        port=_as_int(data.get("port"), default=d.port, min_value=1),
        path=_as_str(data.get("path"), default=d.path),
        user_agent=_as_str(data.get("user_agent"), default=d.user_agent),
        connect_timeout=_as_float(
            data.get("connect_timeout"), default=d.connect_timeout, min_value=0.1
        ),
        keepalive_seconds=_as_float(
            data.get("keepalive_seconds"), default=d.keepalive_seconds, min_value=0.0
        ),
        log_level=_as_str(data.get("log_level"), default=d.log_level).upper(),
        track=_as_str(data.get("track"), default=d.track),
        credentials=_credentials_or_none(creds_src),
    )


def load_config_file(path: str | Path) -> StreamConfig:
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {p}") from e
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {p}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")
    return config_from_mapping(data)


def load_config_env(environ: Mapping[str, str] | None = None) -> StreamConfig:
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    for name in (
        "host",
        "port",
        "path",
        "user_agent",
        "connect_timeout",
        "keepalive_seconds",
        "log_level",
        "track",
        "consumer_key",
        "consumer_secret",
        "access_token",
        "access_token_secret",
    ):
        value = env.get(ENV_PREFIX + name.upper())
        if value is not None:
            data[name] = value
    return config_from_mapping(data)
