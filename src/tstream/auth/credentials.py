from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_FIELDS = ("consumer_key", "consumer_secret", "access_token", "access_token_secret")

# Accepted spellings per field, in lookup order.
_ALIASES: dict[str, tuple[str, ...]] = {
    "consumer_key": ("consumer_key", "consumerKey"),
    "consumer_secret": ("consumer_secret", "consumerSecret"),
    "access_token": ("access_token", "accessToken"),
    "access_token_secret": ("access_token_secret", "accessTokenSecret"),
}


class CredentialsError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class Credentials:
    """
    OAuth 1.0a user-context credentials for the signed stream.

    Secrets are excluded from repr() so credentials can be logged safely.
    """

    consumer_key: str
    consumer_secret: str
    access_token: str
    access_token_secret: str

    def __post_init__(self) -> None:
        for name in _FIELDS:
            if not isinstance(getattr(self, name), str):
                raise CredentialsError(f"{name} must be a string")

    def __repr__(self) -> str:
        return (
            f"Credentials(consumer_key={self.consumer_key!r}, "
            f"access_token={self.access_token!r}, consumer_secret=***, access_token_secret=***)"
        )

    @classmethod
    def from_mapping(cls, data: Any) -> Credentials:
        """
        Build credentials from a flat or nested mapping.

        Flat keys may be snake_case or camelCase. Nested form:
            {"consumer": {"key": ..., "secret": ...}, "access": {"token": ..., "secret": ...}}
        """

        if isinstance(data, Credentials):
            return data
        if not isinstance(data, Mapping):
            raise CredentialsError(
                "credentials must be a mapping with consumer_key, consumer_secret, "
                "access_token, access_token_secret"
            )

        consumer = data.get("consumer")
        access = data.get("access")
        nested: dict[str, Any] = {}
        if isinstance(consumer, Mapping):
            nested["consumer_key"] = consumer.get("key")
            nested["consumer_secret"] = consumer.get("secret")
        if isinstance(access, Mapping):
            nested["access_token"] = access.get("token")
            nested["access_token_secret"] = access.get("secret")

        values: dict[str, str] = {}
        missing: list[str] = []
        for name in _FIELDS:
            value = None
            for alias in _ALIASES[name]:
                if alias in data:
                    value = data[alias]
                    break
            if value is None:
                value = nested.get(name)
            if value is None:
                missing.append(name)
                continue
            if not isinstance(value, str):
                raise CredentialsError(f"{name} must be a string")
            values[name] = value

        if missing:
            raise CredentialsError(f"Missing credential fields: {', '.join(missing)}")
        return cls(**values)
