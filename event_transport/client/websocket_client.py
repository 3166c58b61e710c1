"""
MODULE OVERVIEW:
The WebSocket client transport.

WHAT IS HAPPENING HERE:
We use the `websockets` library. Opening the socket registers it server-side under our stream
identity; the `init` message then asks the server to start producing into it. Every frame is a
JSON object `{"type", "data"}`; the loop ends on `done`.
"""
import json
from typing import Any

import websockets

from event_transport.client.base_client import BaseTransport


class WebSocketTransport(BaseTransport):
    mode: str = "ws"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._ws = None

    async def _run(self, initial_payload: dict[str, Any]) -> None:
        url = self.config.build_web_socket_url(self.service_name, self.stream_id)
        if not url:
            raise RuntimeError("No WebSocket URL configured.")

        async with websockets.connect(url) as ws:
            self._ws = ws
            await self.emit_open()
            await self.send({"type": "init", "payload": initial_payload})

            try:
                while self._running:
                    raw = await ws.recv()
                    self.stats["bytes_received"] += len(raw)
                    message = json.loads(raw)
                    await self.emit_message(message)
                    if self.is_done(message):
                        break
            finally:
                self._ws = None

    async def send(self, data: dict[str, Any]) -> None:
        if self._ws is None:
            await self.emit_error(RuntimeError("WebSocket not open."))
            return
        await self._ws.send(json.dumps(data or {}))

    async def close(self) -> None:
        self._running = False
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        await self._release()
