"""
MODULE OVERVIEW:
Single-shot client transport.

WHAT IS HAPPENING HERE:
One POST, one JSON body back: `{"type": "done", "events": [...], "data": {...}}`. That body is
the only message the channel ever emits.
"""
from typing import Any

from event_transport.client.base_client import BaseTransport


class NoStreamTransport(BaseTransport):
    mode: str = "nostream"

    async def _run(self, initial_payload: dict[str, Any]) -> None:
        await self.emit_open()
        response = await self.start_remote(initial_payload)
        self.stats["bytes_received"] += len(response.content)
        await self.emit_message(response.json())
