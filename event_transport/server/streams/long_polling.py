"""
MODULE OVERVIEW:
Long polling engine.

WHAT IS HAPPENING HERE:
Same producer side as short polling. The consumer request, instead of answering "empty" at
once, keeps re-checking the queue with a short sleep in between until an event shows up or
its timeout runs out. The wait occupies the consumer request, not the producer.

A timeout returns the synthetic `timeout` marker and carries nothing over: the next call
starts a fresh window.
"""
import asyncio
import time
from typing import Any

from event_transport.server.streams.queued import QueuedEventStream
from event_transport.shared.models import TransportMode, timeout_marker


class LongPollingEventStream(QueuedEventStream):
    mode = TransportMode.LONG
    queue_prefix = "evq_long_"

    def __init__(self, service_name: str, stream_id: str, store, sleep_s: float = 0.05):
        super().__init__(service_name, stream_id, store)
        self.sleep_s = sleep_s

    async def wait_next(self, timeout_s: float = 20.0) -> dict[str, Any]:
        started_at = time.monotonic()

        while True:
            event = await self._pop()
            if event is not None:
                return event

            if time.monotonic() - started_at > timeout_s:
                return timeout_marker()

            await asyncio.sleep(self.sleep_s)
