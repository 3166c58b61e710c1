"""
MODULE OVERVIEW:
The lifecycle contract shared by all five server-side transport engines.

WHAT IS HAPPENING HERE:
Business logic only ever sees `start / push / send_comment / is_disconnected / finish`.
The bookkeeping that makes those calls safe (implicit start, idempotent finish, silent
drops after finish) is done once here; each engine only fills in what "open", "emit",
"comment" and "close" mean for its wire.

Both `started` and `finished` only ever go from False to True.
"""
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from event_transport.shared.models import DONE, EMPTY, TIMEOUT, TransportMode

RESERVED_TYPES = frozenset({DONE, TIMEOUT, EMPTY})


class EventStream(ABC):
    mode: TransportMode

    def __init__(self):
        self.started = False
        self.finished = False

    async def start(self) -> None:
        if self.started:
            return
        self.started = True
        await self._open()

    async def push(self, event: str, data: dict[str, Any] | None = None) -> None:
        if self.finished:
            return
        if event in RESERVED_TYPES:
            logger.warning(f"protocol={self.mode.value} event=dropped reason=reserved_type type={event}")
            return
        await self.start()
        await self._emit({"type": event, "data": dict(data or {})})

    async def send_comment(self, text: str) -> None:
        if self.finished:
            return
        await self.start()
        await self._comment(text)

    async def is_disconnected(self) -> bool:
        return False

    async def finish(self, final_payload: dict[str, Any] | None = None) -> None:
        if self.finished:
            return
        self.finished = True
        await self.start()
        await self._close({"type": DONE, "data": dict(final_payload or {})})

    async def _open(self) -> None:
        pass

    @abstractmethod
    async def _emit(self, event: dict[str, Any]) -> None:
        pass

    async def _comment(self, text: str) -> None:
        # Mechanisms without an out-of-band channel simply drop comments.
        pass

    async def _close(self, done_event: dict[str, Any]) -> None:
        await self._emit(done_event)
