"""
MODULE OVERVIEW:
The registry of live server-side connections and the source of the /stats numbers.

WHAT IS HAPPENING HERE:
A WebSocket stream cannot be created out of thin air: the browser must already be connected.
The websocket route registers each accepted socket here under its stream identity, and the
stream factory asks `resolve(service, stream)` for it. No socket means WebSocket mode is
unavailable for that identity and the factory falls through to the next mode.

SSE streams and pending long polls are only counted, for observability.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Protocol

from fastapi.websockets import WebSocket
from loguru import logger

from event_transport.shared.models import ConnectionStats, stream_key


class WebSocketConnectionResolver(Protocol):
    def resolve(self, service_name: str, stream_id: str) -> Any | None: ...


class NullWebSocketConnectionResolver:
    """Resolver for deployments without a WebSocket server: WS mode is never available."""

    def resolve(self, service_name: str, stream_id: str) -> Any | None:
        return None


class ConnectionManager:
    def __init__(self):
        self.active_websockets: Dict[str, WebSocket] = {}
        self.active_sse: set[str] = set()
        self.pending_long_polls = 0
        self.total_streams_created = 0
        self.startup_time = datetime.now(timezone.utc)

    # ==========================
    # WEBSOCKET MANAGEMENT
    # ==========================
    async def connect_ws(self, service_name: str, stream_id: str, websocket: WebSocket):
        await websocket.accept()
        key = stream_key(service_name, stream_id)
        self.active_websockets[key] = websocket
        logger.info(f"stream={key} protocol=websocket event=connect reason=accepted")

    def disconnect_ws(self, service_name: str, stream_id: str, websocket: WebSocket | None = None):
        key = stream_key(service_name, stream_id)
        current = self.active_websockets.get(key)
        # A reconnect may already have replaced the socket under this key.
        if current is not None and (websocket is None or current is websocket):
            del self.active_websockets[key]
            logger.info(f"stream={key} protocol=websocket event=disconnect reason=cleanup")

    def resolve(self, service_name: str, stream_id: str) -> WebSocket | None:
        return self.active_websockets.get(stream_key(service_name, stream_id))

    # ==========================
    # SSE / LONG POLL COUNTERS
    # ==========================
    def sse_opened(self, service_name: str, stream_id: str) -> None:
        key = stream_key(service_name, stream_id)
        self.active_sse.add(key)
        logger.info(f"stream={key} protocol=sse event=connect")

    def sse_closed(self, service_name: str, stream_id: str) -> None:
        key = stream_key(service_name, stream_id)
        self.active_sse.discard(key)
        logger.info(f"stream={key} protocol=sse event=disconnect reason=cleanup")

    def long_poll_started(self) -> None:
        self.pending_long_polls += 1

    def long_poll_ended(self) -> None:
        self.pending_long_polls = max(0, self.pending_long_polls - 1)

    def stream_created(self) -> None:
        self.total_streams_created += 1

    # ==========================
    # METRICS
    # ==========================
    def get_stats(self) -> ConnectionStats:
        return ConnectionStats(
            active_ws=len(self.active_websockets),
            active_sse=len(self.active_sse),
            pending_long_polls=self.pending_long_polls,
            total_streams_created=self.total_streams_created,
            uptime_s=(datetime.now(timezone.utc) - self.startup_time).total_seconds(),
            server_time=datetime.now(timezone.utc)
        )
