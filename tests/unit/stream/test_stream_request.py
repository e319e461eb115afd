from __future__ import annotations

import base64
import hashlib
import hmac
import re
from urllib.parse import quote, unquote

import pytest

from tstream.auth.credentials import Credentials
from tstream.stream.request import (
    DEFAULT_ENDPOINT,
    TrackRequest,
    build_stream_request,
)
from tstream.transport.base import Endpoint

FILTER_URL = "https://stream.twitter.com/1.1/statuses/filter.json"


def _header_fields(header: str) -> dict[str, str]:
    assert header.startswith("OAuth ")
    return dict(re.findall(r'(\w+)="([^"]*)"', header))


def test_track_body_is_url_encoded() -> None:
    assert TrackRequest(track="foo,bar").encode() == "delimited=length&track=foo%2Cbar"
    assert TrackRequest(track="new york,nyc").encode() == "delimited=length&track=new%20york%2Cnyc"


def test_default_endpoint_url() -> None:
    assert DEFAULT_ENDPOINT.url == FILTER_URL
    assert Endpoint("localhost", 8443, "/s").url == "https://localhost:8443/s"


def test_request_headers_and_body(creds: Credentials) -> None:
    req = build_stream_request(creds, TrackRequest(track="foo,bar"), user_agent="ua/1")
    assert req.method == "POST"
    assert req.url == FILTER_URL
    assert req.body == b"delimited=length&track=foo%2Cbar"
    assert b"track=foo%2Cbar" in req.body
    assert req.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert req.headers["Accept"] == "*/*"
    assert req.headers["User-Agent"] == "ua/1"
    assert req.headers["Content-Length"] == str(len(req.body))
    assert req.headers["Connection"] == "keep-alive"
    with pytest.raises(TypeError):
        req.headers["Authorization"] = "x"  # type: ignore[index]


def test_signature_recomputes_from_header(creds: Credentials) -> None:
    req = build_stream_request(creds, TrackRequest(track="foo,bar"))
    fields = _header_fields(req.authorization)
    assert list(fields) == sorted(fields)
    assert fields["oauth_signature_method"] == "HMAC-SHA1"
    assert fields["oauth_version"] == "1.0"
    assert fields["oauth_consumer_key"] == creds.consumer_key
    assert fields["oauth_token"] == creds.access_token

    signed = {k: unquote(v) for k, v in fields.items() if k != "oauth_signature"}
    signed.update({"delimited": "length", "track": "foo,bar"})
    pairs = sorted(f"{quote(k, safe='')}={quote(v, safe='')}" for k, v in signed.items())
    base = "&".join(["POST", quote(FILTER_URL, safe=""), quote("&".join(pairs), safe="")])
    key = f"{creds.consumer_secret}&{creds.access_token_secret}".encode()
    expected = base64.b64encode(hmac.new(key, base.encode(), hashlib.sha1).digest()).decode()
    assert unquote(fields["oauth_signature"]) == expected


def test_fixed_nonce_and_timestamp_are_reproducible(creds: Credentials) -> None:
    a = build_stream_request(creds, TrackRequest(track="x"), nonce="abc", timestamp=1)
    b = build_stream_request(creds, TrackRequest(track="x"), nonce="abc", timestamp=1)
    assert a.authorization == b.authorization
    c = build_stream_request(creds, TrackRequest(track="y"), nonce="abc", timestamp=1)
    assert c.auth.signature != a.auth.signature


def test_every_build_draws_a_new_nonce(creds: Credentials) -> None:
    a = build_stream_request(creds, TrackRequest(track="x"))
    b = build_stream_request(creds, TrackRequest(track="x"))
    assert a.auth.nonce != b.auth.nonce
    assert a.authorization != b.authorization
