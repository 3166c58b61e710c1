"""
MODULE OVERVIEW:
Single-shot engine: nothing is streamed, everything is delivered in one JSON body at the end.

WHAT IS HAPPENING HERE:
This is the mechanism of last resort for hosts that can neither hold a connection open nor run
a background consumer. Pushes are buffered in order; `finish` freezes the buffer together with
the final payload, and the route returns that as an ordinary JSON response.
"""
from typing import Any

from fastapi.responses import JSONResponse

from event_transport.server.streams.base import EventStream
from event_transport.shared.errors import TransportError
from event_transport.shared.models import CombinedPayload, Event, TransportMode


class NoStreamEventStream(EventStream):
    mode = TransportMode.NOSTREAM

    def __init__(self):
        super().__init__()
        self.buffer: list[Event] = []
        self.headers: dict[str, str] = {}
        self.result: CombinedPayload | None = None

    async def _open(self) -> None:
        self.headers = {"Cache-Control": "no-cache, no-store, must-revalidate"}

    async def _emit(self, event: dict[str, Any]) -> None:
        self.buffer.append(Event(**event))

    async def _close(self, done_event: dict[str, Any]) -> None:
        self.result = CombinedPayload(events=list(self.buffer), data=done_event["data"])

    def response(self) -> JSONResponse:
        if self.result is None:
            raise TransportError("single-shot stream has not been finished")
        return JSONResponse(self.result.model_dump(), headers=self.headers)
