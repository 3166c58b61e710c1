"""
MODULE OVERVIEW:
Server-Sent Events engine: a held-open text/event-stream response.

WHAT IS HAPPENING HERE:
The producer and the HTTP response run in different tasks. The producer's calls turn into
raw SSE frames on an outbox queue; `frames()` drains that queue as the body of an
`EventSourceResponse`, which also sends periodic ping comments while the stream is idle.

Frames are encoded with `sep="\n"`:

    event: token
    data: {"t": "He"}

and comments as `: keep-alive`. The first frame is a lone newline so that proxies with a
minimum-bytes buffering threshold start forwarding early. Optional padding comments after
every N events keep such buffers flushing for the rest of the stream.

Disconnects are detected two ways: the body iterator being closed early (the response task
was cancelled) and the request's own `is_disconnected()`. Once gone, every write is skipped.
"""
import asyncio
import json
from typing import Any, AsyncIterator, Callable

from loguru import logger
from sse_starlette import EventSourceResponse, ServerSentEvent

from event_transport.server.streams.base import EventStream
from event_transport.shared.models import TransportMode

INITIAL_FRAME = b"\n"


def encode_event(event: str, data: dict[str, Any]) -> bytes:
    return ServerSentEvent(data=json.dumps(data, ensure_ascii=False), event=event, sep="\n").encode()


def encode_comment(text: str) -> bytes:
    return ServerSentEvent(comment=text, sep="\n").encode()


class SseEventStream(EventStream):
    mode = TransportMode.SSE

    def __init__(
        self,
        request: Any = None,
        padding_every: int = 0,
        padding_bytes: int = 2048,
        ping_interval_s: float = 15.0,
    ):
        super().__init__()
        self._request = request
        self.padding_every = padding_every
        self.padding_bytes = padding_bytes
        self.ping_interval_s = ping_interval_s
        self._outbox: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._closed = False
        self._events_since_padding = 0

    async def _open(self) -> None:
        await self._write(INITIAL_FRAME)

    async def is_disconnected(self) -> bool:
        if self._closed:
            return True
        if self._request is None:
            return False
        return await self._request.is_disconnected()

    async def _emit(self, event: dict[str, Any]) -> None:
        if await self.is_disconnected():
            return
        await self._write(encode_event(event["type"], event["data"]))

        if self.padding_every > 0:
            self._events_since_padding += 1
            if self._events_since_padding >= self.padding_every:
                self._events_since_padding = 0
                await self._write(b":" + b" " * self.padding_bytes + b"\n\n")

    async def _comment(self, text: str) -> None:
        if await self.is_disconnected():
            return
        await self._write(encode_comment(text))

    async def _close(self, done_event: dict[str, Any]) -> None:
        if not await self.is_disconnected():
            await self._write(encode_event(done_event["type"], done_event["data"]))
        else:
            logger.debug("protocol=sse event=finish reason=client_gone")
        # End of body, whether or not the done frame went out.
        await self._outbox.put(None)

    async def _write(self, frame: bytes) -> None:
        await self._outbox.put(frame)

    async def frames(self, on_close: Callable[[], None] | None = None) -> AsyncIterator[bytes]:
        try:
            while True:
                frame = await self._outbox.get()
                if frame is None:
                    break
                yield frame
        finally:
            self._closed = True
            if on_close is not None:
                on_close()

    def response(self, on_close: Callable[[], None] | None = None) -> EventSourceResponse:
        return EventSourceResponse(
            self.frames(on_close),
            headers={"Cache-Control": "no-cache"},
            ping=self.ping_interval_s,
            sep="\n",
        )
