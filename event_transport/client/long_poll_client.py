"""
MODULE OVERVIEW:
Long polling client transport.

WHAT IS HAPPENING HERE:
Like short polling, but each GET blocks on the server until an event is ready or the server's
timeout expires. A `{"type": "timeout"}` answer is not an error: we simply ask again at once.
Our HTTP timeout is set HIGHER than the server's wait, so a server-side timeout always arrives
as a soft JSON answer rather than a dropped connection.
"""
from typing import Any

from event_transport.client.base_client import BaseTransport
from event_transport.shared.models import TIMEOUT


class LongPollingTransport(BaseTransport):
    mode: str = "long"

    async def _run(self, initial_payload: dict[str, Any]) -> None:
        await self.emit_open()
        await self.start_remote(initial_payload)

        url = self.http_url()

        while self._running:
            self.stats["requests_sent"] += 1
            response = await self.client.get(url, headers={"Accept": "application/json", "Cache-Control": "no-cache"})
            response.raise_for_status()
            message = response.json()

            if not message:
                continue
            if message.get("type") == TIMEOUT:
                self.stats["empty_responses"] += 1
                continue

            await self.emit_message(message)
            if self.is_done(message):
                break
