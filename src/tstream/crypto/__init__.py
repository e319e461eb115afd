from .hashes import hmac_sha1
from .random import make_nonce, random_bytes

__all__ = ["hmac_sha1", "make_nonce", "random_bytes"]
