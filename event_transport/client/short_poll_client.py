"""
MODULE OVERVIEW:
Short polling client transport.

WHAT IS HAPPENING HERE:
One POST starts the server-side producer; after that we GET the poll endpoint on a fixed
interval. `{"type": "empty"}` means "nothing yet, ask again later". The loop ends after the
`done` event. The interval is deliberately fixed, not adaptive.
"""
import asyncio
from typing import Any

from event_transport.client.base_client import BaseTransport
from event_transport.shared.models import EMPTY


class ShortPollingTransport(BaseTransport):
    mode: str = "short"

    async def _run(self, initial_payload: dict[str, Any]) -> None:
        await self.emit_open()
        await self.start_remote(initial_payload)

        delay_s = self.config.short_poll_interval_ms / 1000.0
        url = self.http_url()

        while self._running:
            self.stats["requests_sent"] += 1
            response = await self.client.get(url, headers={"Accept": "application/json", "Cache-Control": "no-cache"})
            response.raise_for_status()
            message = response.json()

            if message and message.get("type") and message.get("type") != EMPTY:
                await self.emit_message(message)
                if self.is_done(message):
                    break
            else:
                self.stats["empty_responses"] += 1

            if self._running:
                await asyncio.sleep(delay_s)
