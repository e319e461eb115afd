from __future__ import annotations

from cryptography.hazmat.primitives import hashes, hmac


def hmac_sha1(key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA1())  # noqa: S303 (required by OAuth 1.0a HMAC-SHA1)
    h.update(data)
    return h.finalize()
