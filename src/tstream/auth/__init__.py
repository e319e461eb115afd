from .bearer import BearerTokenProvider, TokenError
from .credentials import Credentials, CredentialsError
from .oauth1 import (
    AuthParams,
    authorization_header,
    make_auth_params,
    normalized_params,
    percent_encode,
    sign,
    signature_base_string,
    signing_key,
)

__all__ = [
    "AuthParams",
    "BearerTokenProvider",
    "Credentials",
    "CredentialsError",
    "TokenError",
    "authorization_header",
    "make_auth_params",
    "normalized_params",
    "percent_encode",
    "sign",
    "signature_base_string",
    "signing_key",
]
