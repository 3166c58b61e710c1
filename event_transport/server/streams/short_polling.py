"""
MODULE OVERVIEW:
Short polling engine.

WHAT IS HAPPENING HERE:
The client asks "anything new?" on a fixed interval. Each ask is one stateless request that
pops at most one event. An empty queue is answered right away with the `empty` marker, which
is never stored, so the client knows to come back after its interval.
"""
from typing import Any

from event_transport.server.streams.queued import QueuedEventStream
from event_transport.shared.models import TransportMode


class ShortPollingEventStream(QueuedEventStream):
    mode = TransportMode.SHORT
    queue_prefix = "evq_"

    async def poll_next(self) -> dict[str, Any] | None:
        """Pop the oldest pending event, or None when nothing is queued yet."""
        return await self._pop()
