from __future__ import annotations

import json

import pytest
from starlette.websockets import WebSocketState

from event_transport.server.queue_store import FileQueueStore, MemoryQueueStore
from event_transport.server.streams.long_polling import LongPollingEventStream
from event_transport.server.streams.nostream import NoStreamEventStream
from event_transport.server.streams.short_polling import ShortPollingEventStream
from event_transport.server.streams.sse import INITIAL_FRAME, SseEventStream, encode_comment, encode_event
from event_transport.server.streams.websocket import WebSocketEventStream
from event_transport.shared.errors import TransportError


class FakeRequest:
    def __init__(self, disconnected: bool = False):
        self.disconnected = disconnected

    async def is_disconnected(self) -> bool:
        return self.disconnected


class FakeConnection:
    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.closed = False
        self.fail = fail

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise ConnectionError("socket gone")
        self.sent.append(json.loads(text))


class StarletteLikeConnection(FakeConnection):
    def __init__(self, state: WebSocketState):
        super().__init__()
        del self.closed
        self.client_state = state
        self.application_state = WebSocketState.CONNECTED


async def _drain(engine: SseEventStream, on_close=None) -> list[bytes]:
    return [frame async for frame in engine.frames(on_close)]


# ==========================
# SINGLE-SHOT
# ==========================
@pytest.mark.asyncio
async def test_nostream_combines_events_with_final_payload() -> None:
    engine = NoStreamEventStream()
    await engine.push("token", {"t": "He"})
    await engine.push("token", {"t": "llo"})
    await engine.finish({"text": "Hello"})

    response = engine.response()
    assert json.loads(response.body) == {
        "type": "done",
        "events": [
            {"type": "token", "data": {"t": "He"}},
            {"type": "token", "data": {"t": "llo"}},
        ],
        "data": {"text": "Hello"},
    }
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"


@pytest.mark.asyncio
async def test_nostream_finish_without_events() -> None:
    engine = NoStreamEventStream()
    await engine.finish()

    assert engine.started
    assert json.loads(engine.response().body) == {"type": "done", "events": [], "data": {}}


@pytest.mark.asyncio
async def test_nostream_lifecycle_is_idempotent() -> None:
    engine = NoStreamEventStream()
    await engine.start()
    await engine.start()
    await engine.push("token", {"t": "a"})
    await engine.finish({"n": 1})
    await engine.finish({"n": 2})
    await engine.push("token", {"t": "late"})
    await engine.send_comment("late")

    body = json.loads(engine.response().body)
    assert body["data"] == {"n": 1}
    assert [e["data"]["t"] for e in body["events"]] == ["a"]
    assert await engine.is_disconnected() is False


@pytest.mark.asyncio
async def test_nostream_response_before_finish_raises() -> None:
    engine = NoStreamEventStream()
    await engine.push("token", {"t": "a"})
    with pytest.raises(TransportError):
        engine.response()


@pytest.mark.asyncio
async def test_reserved_event_types_are_not_pushed() -> None:
    engine = NoStreamEventStream()
    await engine.push("done", {"early": True})
    await engine.push("timeout")
    await engine.push("empty")

    assert engine.buffer == []
    assert not engine.finished


# ==========================
# SHORT POLLING
# ==========================
@pytest.mark.asyncio
async def test_short_polling_producer_and_consumer_share_a_queue(tmp_path) -> None:
    store = FileQueueStore(tmp_path)
    producer = ShortPollingEventStream("chat", "s1", store)
    consumer = ShortPollingEventStream("chat", "s1", store)

    assert await consumer.poll_next() is None

    await producer.push("token", {"t": "He"})
    await producer.push("token", {"t": "llo"})
    await producer.finish({"text": "Hello"})

    assert await consumer.poll_next() == {"type": "token", "data": {"t": "He"}}
    assert await consumer.poll_next() == {"type": "token", "data": {"t": "llo"}}
    assert await consumer.poll_next() == {"type": "done", "data": {"text": "Hello"}}
    assert await consumer.poll_next() is None

    assert (tmp_path / "evq_chat_s1.json").exists()


@pytest.mark.asyncio
async def test_short_polling_drops_comments_and_late_pushes() -> None:
    store = MemoryQueueStore()
    engine = ShortPollingEventStream("chat", "s1", store)

    await engine.send_comment("keep-alive")
    await engine.finish()
    await engine.push("token", {"t": "late"})

    assert store.peek_all(engine.queue_key) == [{"type": "done", "data": {}}]


# ==========================
# LONG POLLING
# ==========================
@pytest.mark.asyncio
async def test_long_polling_uses_its_own_queue(tmp_path) -> None:
    store = FileQueueStore(tmp_path)
    await LongPollingEventStream("chat", "s1", store).push("token", {"t": "x"})

    assert (tmp_path / "evq_long_chat_s1.json").exists()
    assert await ShortPollingEventStream("chat", "s1", store).poll_next() is None


@pytest.mark.asyncio
async def test_long_polling_returns_pending_event_immediately() -> None:
    store = MemoryQueueStore()
    engine = LongPollingEventStream("chat", "s1", store, sleep_s=0.01)
    await engine.push("token", {"t": "He"})

    assert await engine.wait_next(timeout_s=5) == {"type": "token", "data": {"t": "He"}}


@pytest.mark.asyncio
async def test_long_polling_times_out_on_empty_queue() -> None:
    engine = LongPollingEventStream("chat", "s1", MemoryQueueStore(), sleep_s=0.01)

    assert await engine.wait_next(timeout_s=0.05) == {"type": "timeout"}


@pytest.mark.asyncio
async def test_long_polling_negative_timeout_still_checks_once() -> None:
    store = MemoryQueueStore()
    engine = LongPollingEventStream("chat", "s1", store, sleep_s=0.01)

    assert await engine.wait_next(timeout_s=-1) == {"type": "timeout"}

    await engine.push("token", {"t": "x"})
    assert await engine.wait_next(timeout_s=-1) == {"type": "token", "data": {"t": "x"}}


@pytest.mark.asyncio
async def test_long_polling_timeout_marker_is_never_stored() -> None:
    store = MemoryQueueStore()
    engine = LongPollingEventStream("chat", "s1", store, sleep_s=0.01)
    await engine.wait_next(timeout_s=0.02)

    assert store.peek_all(engine.queue_key) == []


# ==========================
# SSE
# ==========================
def test_sse_frame_encoding() -> None:
    assert encode_event("token", {"t": "He"}) == b'event: token\ndata: {"t": "He"}\n\n'
    assert encode_comment("keep-alive") == b": keep-alive\n\n"


@pytest.mark.asyncio
async def test_sse_stream_frames_in_order() -> None:
    engine = SseEventStream()
    await engine.push("token", {"t": "He"})
    await engine.send_comment("keep-alive")
    await engine.push("token", {"t": "llo"})
    await engine.finish({"text": "Hello"})

    closed = []
    frames = await _drain(engine, on_close=lambda: closed.append(True))

    assert frames == [
        INITIAL_FRAME,
        encode_event("token", {"t": "He"}),
        b": keep-alive\n\n",
        encode_event("token", {"t": "llo"}),
        encode_event("done", {"text": "Hello"}),
    ]
    assert closed == [True]
    assert await engine.is_disconnected() is True


@pytest.mark.asyncio
async def test_sse_finish_is_idempotent_and_ends_the_body() -> None:
    engine = SseEventStream()
    await engine.finish()
    await engine.finish({"again": True})
    await engine.push("token", {"t": "late"})

    frames = await _drain(engine)
    assert frames == [INITIAL_FRAME, encode_event("done", {})]


@pytest.mark.asyncio
async def test_sse_padding_after_every_n_events() -> None:
    engine = SseEventStream(padding_every=2, padding_bytes=4)
    await engine.push("a", {})
    await engine.push("b", {})
    await engine.push("c", {})
    await engine.finish()

    frames = await _drain(engine)
    assert frames[3] == b":    \n\n"
    assert frames.count(b":    \n\n") == 1


@pytest.mark.asyncio
async def test_sse_skips_writes_once_the_client_is_gone() -> None:
    request = FakeRequest(disconnected=False)
    engine = SseEventStream(request)
    await engine.push("token", {"t": "He"})

    request.disconnected = True
    assert await engine.is_disconnected() is True
    await engine.push("token", {"t": "llo"})
    await engine.send_comment("keep-alive")
    await engine.finish({"text": "He"})

    frames = await _drain(engine)
    assert frames == [INITIAL_FRAME, encode_event("token", {"t": "He"})]


# ==========================
# WEBSOCKET
# ==========================
@pytest.mark.asyncio
async def test_websocket_sends_json_frames() -> None:
    connection = FakeConnection()
    engine = WebSocketEventStream(connection)

    await engine.push("token", {"t": "He"})
    await engine.send_comment("keep-alive")
    await engine.finish({"text": "He"})

    assert connection.sent == [
        {"type": "token", "data": {"t": "He"}},
        {"type": "comment", "data": {"text": "keep-alive"}},
        {"type": "done", "data": {"text": "He"}},
    ]


@pytest.mark.asyncio
async def test_websocket_send_failures_are_swallowed() -> None:
    engine = WebSocketEventStream(FakeConnection(fail=True))

    await engine.push("token", {"t": "He"})
    await engine.finish()

    assert engine.finished


@pytest.mark.asyncio
async def test_websocket_closed_connection_is_disconnected() -> None:
    connection = FakeConnection()
    engine = WebSocketEventStream(connection)
    connection.closed = True

    assert await engine.is_disconnected() is True
    await engine.push("token", {"t": "He"})
    assert connection.sent == []


@pytest.mark.asyncio
async def test_websocket_starlette_states() -> None:
    live = WebSocketEventStream(StarletteLikeConnection(WebSocketState.CONNECTED))
    gone = WebSocketEventStream(StarletteLikeConnection(WebSocketState.DISCONNECTED))

    assert await live.is_disconnected() is False
    assert await gone.is_disconnected() is True


@pytest.mark.asyncio
async def test_websocket_without_disconnect_signal_counts_as_connected() -> None:
    class Bare:
        def __init__(self):
            self.sent = []

        async def send(self, text: str) -> None:
            self.sent.append(text)

    connection = Bare()
    engine = WebSocketEventStream(connection)
    await engine.push("token", {"t": "x"})

    assert await engine.is_disconnected() is False
    assert json.loads(connection.sent[0]) == {"type": "token", "data": {"t": "x"}}


@pytest.mark.asyncio
async def test_websocket_finish_is_idempotent() -> None:
    connection = FakeConnection()
    engine = WebSocketEventStream(connection)

    await engine.finish({"n": 1})
    await engine.finish({"n": 2})
    await engine.push("token", {"t": "late"})

    assert connection.sent == [{"type": "done", "data": {"n": 1}}]
