from __future__ import annotations

import base64
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from urllib.parse import quote

from tstream.auth.credentials import Credentials
from tstream.crypto import hmac_sha1, make_nonce

logger = logging.getLogger(__name__)

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


def percent_encode(value: object) -> str:
    """
    RFC 3986 percent-encoding as required by OAuth 1.0a.

    Only the unreserved set (ALPHA / DIGIT / "-" / "." / "_" / "~") is left as-is.
    """

    return quote(str(value), safe="")


@dataclass(frozen=True, slots=True)
class AuthParams:
    """
    Per-attempt oauth_* parameters.

    Built fresh for every connection attempt. `signature` stays empty until the
    request body is final; use `signed()` to attach it.
    """

    consumer_key: str
    token: str
    nonce: str
    timestamp: int
    signature_method: str = SIGNATURE_METHOD
    version: str = OAUTH_VERSION
    signature: str = ""

    def as_params(self) -> dict[str, str]:
        """oauth_* parameters covered by the signature (the signature itself excluded)."""
        return {
            "oauth_consumer_key": self.consumer_key,
            "oauth_nonce": self.nonce,
            "oauth_signature_method": self.signature_method,
            "oauth_timestamp": str(self.timestamp),
            "oauth_token": self.token,
            "oauth_version": self.version,
        }

    def signed(self, signature: str) -> AuthParams:
        return replace(self, signature=signature)


def make_auth_params(
    credentials: Credentials,
    *,
    nonce: str | None = None,
    timestamp: int | None = None,
) -> AuthParams:
    return AuthParams(
        consumer_key=credentials.consumer_key,
        token=credentials.access_token,
        nonce=nonce if nonce is not None else make_nonce(),
        timestamp=int(timestamp if timestamp is not None else time.time()),
    )


def normalized_params(*param_sets: Mapping[str, object]) -> str:
    """
    Encode every key/value pair as "k=v" and sort the rendered strings as a whole.

    Sorting whole "k=v" strings (not keys alone) is what the stream endpoint
    verifies against; keep it that way.
    """

    pairs: list[str] = []
    for params in param_sets:
        for key, value in params.items():
            if key == "oauth_signature":
                continue
            pairs.append(f"{percent_encode(key)}={percent_encode(value)}")
    pairs.sort()
    return "&".join(pairs)


def signature_base_string(method: str, url: str, params: str) -> str:
    return "&".join((method.upper(), percent_encode(url), percent_encode(params)))


def signing_key(credentials: Credentials) -> str:
    return (
        f"{percent_encode(credentials.consumer_secret)}"
        f"&{percent_encode(credentials.access_token_secret)}"
    )


def sign(
    credentials: Credentials,
    auth_params: AuthParams,
    body: Mapping[str, object],
    method: str,
    url: str,
) -> str:
    """
    HMAC-SHA1 signature of the request, base64 rendered and percent-encoded.

    Pure: the same inputs always produce the same signature.
    """

    base = signature_base_string(method, url, normalized_params(body, auth_params.as_params()))
    logger.debug("OAuth signature base string: %s", base)
    digest = hmac_sha1(signing_key(credentials).encode("utf-8"), base.encode("utf-8"))
    return percent_encode(base64.b64encode(digest).decode("ascii"))


def authorization_header(auth_params: AuthParams) -> str:
    """
    Render the Authorization header value.

    The signature is expected to be percent-encoded already (as returned by `sign`).
    """

    if not auth_params.signature:
        raise ValueError("AuthParams must be signed before rendering the header")
    fields: list[tuple[str, str]] = [
        (k, percent_encode(v)) for k, v in auth_params.as_params().items()
    ]
    fields.append(("oauth_signature", auth_params.signature))
    fields.sort()
    return "OAuth " + ", ".join(f'{k}="{v}"' for k, v in fields)


def encode_form(items: Iterable[tuple[str, object]]) -> str:
    """application/x-www-form-urlencoded body using the same encoding the signature uses."""
    return "&".join(f"{percent_encode(k)}={percent_encode(v)}" for k, v in items)
