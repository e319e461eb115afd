from __future__ import annotations

import base64
import secrets

NONCE_BYTES = 32


def random_bytes(n: int) -> bytes:
    if n < 0:
        raise ValueError("n must be >= 0")
    return secrets.token_bytes(n)


def make_nonce(n: int = NONCE_BYTES) -> str:
    """
    One-time OAuth nonce.

    base64 of `n` random bytes, cut to 32 characters, with "+" and "/" replaced
    by "0" so the value is alphanumeric and needs no escaping in the header.
    """

    raw = base64.b64encode(random_bytes(n)).decode("ascii")
    return raw[:32].replace("+", "0").replace("/", "0")
