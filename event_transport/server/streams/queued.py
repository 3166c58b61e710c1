"""
MODULE OVERVIEW:
Producer side shared by the short and long polling engines.

WHAT IS HAPPENING HERE:
Nothing is held open for the producer: each push is appended to the durable queue under the
stream's key and the request that generates events is free to return. The consumer, a
different request entirely, pops from the same key later. The two polling engines only differ
in how that consumer waits.
"""
import asyncio
from typing import Any

from event_transport.server.queue_store import QueueStore
from event_transport.server.streams.base import EventStream
from event_transport.shared.models import stream_key


class QueuedEventStream(EventStream):
    queue_prefix = "evq_"

    def __init__(self, service_name: str, stream_id: str, store: QueueStore):
        super().__init__()
        self.service_name = service_name
        self.stream_id = stream_id
        self.queue_key = self.queue_prefix + stream_key(service_name, stream_id)
        self._store = store

    async def _emit(self, event: dict[str, Any]) -> None:
        await asyncio.to_thread(self._store.append, self.queue_key, event)

    async def _pop(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._store.pop_front, self.queue_key)
