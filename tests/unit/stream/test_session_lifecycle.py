from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field

import pytest

from tstream.auth.credentials import Credentials, CredentialsError
from tstream.stream.client import StreamClient, StreamClientError
from tstream.stream.events import (
    Closed,
    Connected,
    Data,
    ErrorEvent,
    Garbage,
    Heartbeat,
    StreamEvent,
    StreamHandlers,
)
from tstream.stream.request import TrackRequest, build_stream_request
from tstream.stream.session import StreamSession
from tstream.transport.base import TransportError


@dataclass(slots=True)
class FakeResponse:
    status: int = 200
    reason: str | None = "OK"
    body: list[bytes] = field(default_factory=list)
    fail_with: BaseException | None = None
    hang: bool = False
    slow_abort: bool = False
    aborts: int = 0
    _released: asyncio.Event = field(default_factory=asyncio.Event)

    async def chunks(self) -> AsyncIterator[bytes]:
        for chunk in self.body:
            await asyncio.sleep(0)
            yield chunk
        if self.fail_with is not None:
            raise TransportError("Stream response failed") from self.fail_with
        if self.hang:
            await self._released.wait()

    async def abort(self) -> None:
        self.aborts += 1
        if self.slow_abort:
            await asyncio.sleep(0.01)
        self._released.set()


@dataclass(slots=True)
class FakeTransport:
    response: FakeResponse | None = None
    error: BaseException | None = None
    opened: list[tuple[str, str, dict[str, str], bytes]] = field(default_factory=list)

    async def open(
        self,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
    ) -> FakeResponse:
        self.opened.append((method, url, dict(headers), body))
        await asyncio.sleep(0)
        if self.error is not None:
            raise TransportError(f"{method} {url} failed") from self.error
        assert self.response is not None
        return self.response


@dataclass(slots=True)
class Recorder:
    events: list[StreamEvent] = field(default_factory=list)

    def record(self, evt: StreamEvent) -> None:
        self.events.append(evt)

    def handlers(self) -> StreamHandlers:
        return StreamHandlers(
            on_connected=self.record,
            on_heartbeat=self.record,
            on_data=self.record,
            on_garbage=self.record,
            on_error=self.record,
            on_close=self.record,
        )

    def kinds(self) -> list[str]:
        return [type(e).__name__ for e in self.events]


def _client(creds: Credentials, transport: FakeTransport, rec: Recorder) -> StreamClient:
    return StreamClient(creds, handlers=rec.handlers(), transport=transport)


def test_connected_data_heartbeat_then_normal_end(creds: Credentials) -> None:
    resp = FakeResponse(body=[b'15\r\n{"a":1,"b":2}', b"\r\n", b"\r\n"])
    transport = FakeTransport(response=resp)
    rec = Recorder()

    async def _run() -> None:
        session = await _client(creds, transport, rec).start("foo,bar")
        await session.wait_closed()
        assert session.closed

    asyncio.run(_run())
    assert rec.events == [
        Connected(response=resp),
        Data(value={"a": 1, "b": 2}),
        Heartbeat(),
        Closed(reason="normal end"),
    ]
    assert resp.aborts == 1


def test_garbage_payload_is_reported_and_stream_continues(creds: Credentials) -> None:
    resp = FakeResponse(body=[b"8\r\nnot json", b"3\r\n[1]"])
    rec = Recorder()

    async def _run() -> None:
        session = await _client(creds, FakeTransport(response=resp), rec).start("x")
        await session.wait_closed()

    asyncio.run(_run())
    assert rec.events[1] == Garbage(raw="not json", reason="payload")
    assert rec.events[2] == Data(value=[1])
    assert rec.kinds() == ["Connected", "Garbage", "Data", "Closed"]


def test_non_200_emits_response_error_without_decoding(creds: Credentials) -> None:
    resp = FakeResponse(status=420, reason="Enhance Your Calm", body=[b"\r\n"])
    rec = Recorder()

    async def _run() -> None:
        session = await _client(creds, FakeTransport(response=resp), rec).start("x")
        await session.wait_closed()

    asyncio.run(_run())
    assert rec.kinds() == ["ErrorEvent"]
    evt = rec.events[0]
    assert isinstance(evt, ErrorEvent)
    assert evt.phase == "response"
    assert evt.status_code == 420
    assert evt.error.kind == "protocol"
    assert evt.response is resp
    assert evt.request is not None
    assert resp.aborts == 1


def test_request_failure_emits_request_error(creds: Credentials) -> None:
    refused = ConnectionRefusedError("refused")
    rec = Recorder()

    async def _run() -> None:
        session = await _client(creds, FakeTransport(error=refused), rec).start("x")
        await session.wait_closed()
        assert session.closed

    asyncio.run(_run())
    assert rec.kinds() == ["ErrorEvent"]
    evt = rec.events[0]
    assert isinstance(evt, ErrorEvent)
    assert evt.phase == "request"
    assert evt.error.kind == "transport"
    assert evt.cause is refused
    assert evt.status_code is None


def test_connection_drop_emits_error_then_peer_close(creds: Credentials) -> None:
    reset = ConnectionResetError("reset by peer")
    resp = FakeResponse(body=[b"\r\n"], fail_with=reset)
    rec = Recorder()

    async def _run() -> None:
        session = await _client(creds, FakeTransport(response=resp), rec).start("x")
        await session.wait_closed()

    asyncio.run(_run())
    assert rec.kinds() == ["Connected", "Heartbeat", "ErrorEvent", "Closed"]
    err = rec.events[2]
    assert isinstance(err, ErrorEvent)
    assert err.phase == "response"
    assert err.cause is reset
    assert rec.events[3] == Closed(reason="peer close")
    assert resp.aborts == 1


def test_stop_twice_closes_once(creds: Credentials) -> None:
    resp = FakeResponse(body=[b"\r\n"], hang=True)
    rec = Recorder()

    async def _run() -> None:
        session = await _client(creds, FakeTransport(response=resp), rec).start("x")
        for _ in range(10):
            await asyncio.sleep(0)
        await session.stop()
        await session.stop()
        await session.wait_closed()
        assert session.closed

    asyncio.run(_run())
    assert rec.kinds() == ["Connected", "Heartbeat", "Closed"]
    assert rec.events[-1] == Closed(reason="stopped")
    assert resp.aborts == 1


def test_stop_after_normal_end_is_silent(creds: Credentials) -> None:
    resp = FakeResponse(body=[b"\r\n"])
    rec = Recorder()

    async def _run() -> None:
        session = await _client(creds, FakeTransport(response=resp), rec).start("x")
        await session.wait_closed()
        await session.stop()

    asyncio.run(_run())
    assert rec.kinds() == ["Connected", "Heartbeat", "Closed"]
    assert rec.events[-1] == Closed(reason="normal end")


def test_stop_from_handler(creds: Credentials) -> None:
    resp = FakeResponse(body=[b"3\r\n[1]3\r\n[2]"], hang=True)
    seen: list[StreamEvent] = []
    holder: dict[str, object] = {}

    async def on_data(evt: Data) -> None:
        seen.append(evt)
        await holder["session"].stop()  # type: ignore[attr-defined]

    handlers = StreamHandlers(on_data=on_data, on_close=seen.append)

    async def _run() -> None:
        client = StreamClient(creds, handlers=handlers, transport=FakeTransport(response=resp))
        holder["session"] = await client.start("x")
        await client.session.wait_closed()  # type: ignore[union-attr]

    asyncio.run(_run())
    assert seen == [Data(value=[1]), Closed(reason="stopped")]


def test_failing_handler_does_not_stop_stream(creds: Credentials) -> None:
    resp = FakeResponse(body=[b"3\r\n[1]", b"3\r\n[2]"])
    got: list[object] = []

    def on_data(evt: Data) -> None:
        got.append(evt.value)
        raise RuntimeError("boom")

    async def _run() -> None:
        client = StreamClient(
            creds,
            handlers=StreamHandlers(on_data=on_data),
            transport=FakeTransport(response=resp),
        )
        session = await client.start("x")
        await session.wait_closed()

    asyncio.run(_run())
    assert got == [[1], [2]]


def test_each_start_builds_a_fresh_signed_request(creds: Credentials) -> None:
    transport = FakeTransport(response=FakeResponse(body=[]))

    async def _run() -> None:
        client = StreamClient(creds, handlers=Recorder().handlers(), transport=transport)
        s1 = await client.start("foo")
        await s1.wait_closed()
        transport.response = FakeResponse(body=[])
        s2 = await client.start("foo")
        await s2.wait_closed()
        assert s1.request.auth.nonce != s2.request.auth.nonce
        assert s1.request.headers is not s2.request.headers

    asyncio.run(_run())
    (_, _, h1, _), (_, _, h2, _) = transport.opened
    assert h1["Authorization"] != h2["Authorization"]


def test_only_one_active_session_per_client(creds: Credentials) -> None:
    resp = FakeResponse(body=[], hang=True)

    async def _run() -> None:
        client = StreamClient(
            creds, handlers=Recorder().handlers(), transport=FakeTransport(response=resp)
        )
        session = await client.track("x")
        with pytest.raises(StreamClientError):
            await client.start("y")
        await client.stop()
        assert session.closed

    asyncio.run(_run())


def test_bad_credentials_fail_before_any_network() -> None:
    transport = FakeTransport(response=FakeResponse())
    with pytest.raises(CredentialsError):
        StreamClient("not-a-mapping", transport=transport)  # type: ignore[arg-type]
    assert transport.opened == []


def _dropping_response() -> FakeResponse:
    return FakeResponse(
        body=[b"\r\n"], fail_with=ConnectionResetError("reset by peer"), slow_abort=True
    )


def test_stop_from_error_handler_keeps_peer_close(creds: Credentials) -> None:
    resp = _dropping_response()
    rec = Recorder()
    holder: dict[str, object] = {}

    async def on_error(evt: ErrorEvent) -> None:
        rec.record(evt)
        await holder["session"].stop()  # type: ignore[attr-defined]

    handlers = rec.handlers()
    handlers.on_error = on_error

    async def _run() -> None:
        client = StreamClient(creds, handlers=handlers, transport=FakeTransport(response=resp))
        holder["session"] = await client.start("x")
        await client.session.wait_closed()  # type: ignore[union-attr]

    asyncio.run(_run())
    assert rec.kinds() == ["Connected", "Heartbeat", "ErrorEvent", "Closed"]
    assert rec.events[-1] == Closed(reason="peer close")
    assert resp.aborts == 1


def test_stop_after_error_notification_keeps_peer_close(creds: Credentials) -> None:
    resp = _dropping_response()
    rec = Recorder()

    async def _run() -> None:
        errored = asyncio.Event()

        def on_error(evt: ErrorEvent) -> None:
            rec.record(evt)
            errored.set()

        handlers = rec.handlers()
        handlers.on_error = on_error
        client = StreamClient(creds, handlers=handlers, transport=FakeTransport(response=resp))
        session = await client.start("x")
        await errored.wait()
        await session.stop()
        await session.wait_closed()
        assert session.closed

    asyncio.run(_run())
    assert rec.kinds() == ["Connected", "Heartbeat", "ErrorEvent", "Closed"]
    assert rec.events[-1] == Closed(reason="peer close")
    assert resp.aborts == 1


def test_stop_from_error_handler_on_rejected_stream_emits_no_close(creds: Credentials) -> None:
    resp = FakeResponse(status=401, reason="Unauthorized")
    rec = Recorder()
    holder: dict[str, object] = {}

    async def on_error(evt: ErrorEvent) -> None:
        rec.record(evt)
        await holder["session"].stop()  # type: ignore[attr-defined]

    handlers = rec.handlers()
    handlers.on_error = on_error

    async def _run() -> None:
        client = StreamClient(creds, handlers=handlers, transport=FakeTransport(response=resp))
        holder["session"] = await client.start("x")
        await client.session.wait_closed()  # type: ignore[union-attr]

    asyncio.run(_run())
    assert rec.kinds() == ["ErrorEvent"]


def test_stop_before_start_is_silent(creds: Credentials) -> None:
    rec = Recorder()
    transport = FakeTransport(response=FakeResponse())

    async def _run() -> None:
        session = StreamSession(
            build_stream_request(creds, TrackRequest(track="x")),
            transport=transport,
            handlers=rec.handlers(),
        )
        await session.stop()
        await session.stop()
        assert session.closed

    asyncio.run(_run())
    assert rec.events == []
    assert transport.opened == []
