"""
MODULE OVERVIEW:
WebSocket engine: JSON frames over a duplex connection that somebody else already opened.

WHAT IS HAPPENING HERE:
The engine never accepts, reconnects or closes the socket; the connection registry and the
websocket route own that. Every call becomes one text message `{"type": ..., "data": ...}`.
Send failures are logged and swallowed, because error reporting and reconnection belong to
the connection layer.
"""
import json
from typing import Any

from loguru import logger
from starlette.websockets import WebSocketState

from event_transport.server.streams.base import EventStream
from event_transport.shared.models import TransportMode


class WebSocketEventStream(EventStream):
    mode = TransportMode.WS

    def __init__(self, connection: Any):
        super().__init__()
        self.connection = connection

    async def is_disconnected(self) -> bool:
        # Starlette sockets expose their states; anything else without a signal counts as connected.
        for attr in ("client_state", "application_state"):
            state = getattr(self.connection, attr, None)
            if isinstance(state, WebSocketState) and state == WebSocketState.DISCONNECTED:
                return True
        closed = getattr(self.connection, "closed", None)
        if isinstance(closed, bool):
            return closed
        return False

    async def _emit(self, event: dict[str, Any]) -> None:
        await self._send(event)

    async def _comment(self, text: str) -> None:
        await self._send({"type": "comment", "data": {"text": text}})

    async def _send(self, message: dict[str, Any]) -> None:
        if await self.is_disconnected():
            return
        try:
            text = json.dumps(message, ensure_ascii=False)
            send_text = getattr(self.connection, "send_text", None)
            if send_text is not None:
                await send_text(text)
            else:
                await self.connection.send(text)
        except Exception as e:
            logger.warning(f"protocol=websocket event=send_failed type={message.get('type')} reason='{e}'")
