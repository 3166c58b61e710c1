"""
MODULE OVERVIEW:
The WebSocket route.

WHAT IS HAPPENING HERE:
The socket is accepted and registered under its stream identity, which is what makes WebSocket
mode resolvable for that identity. The client then sends `{"type": "init", "payload": {...}}`;
we ask the factory for a stream and, when it hands back the WebSocket engine, start the producer
in the background while this loop keeps reading (ping/pong, further inits).
"""
import json

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from loguru import logger

from event_transport.server.demo_service import stream_reply
from event_transport.server.route_utils import log_connection
from event_transport.server.streams.websocket import WebSocketEventStream
from event_transport.shared.models import stream_key

router = APIRouter()


async def _send_error(websocket: WebSocket, message: str, **extra) -> None:
    await websocket.send_text(json.dumps({"type": "error", "data": {"error": message, **extra}}))


@router.websocket("/event/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    service: str = Query(...),
    stream: str = Query(...),
):
    state = websocket.app.state
    await state.manager.connect_ws(service, stream, websocket)
    await log_connection("websocket:connect", service, stream)

    try:
        while True:
            text_data = await websocket.receive_text()
            try:
                message = json.loads(text_data)
            except json.JSONDecodeError:
                await _send_error(websocket, "Invalid JSON payload")
                continue
            if not isinstance(message, dict):
                await _send_error(websocket, "Invalid JSON payload")
                continue

            kind = message.get("type")
            if kind == "ping":
                await websocket.send_text(json.dumps({"type": "pong", "data": {}}))
            elif kind == "init":
                payload = message.get("payload") or {}
                if not isinstance(payload, dict):
                    await _send_error(websocket, "Payload must be a JSON object")
                    continue
                engine = state.factory.create_stream(service, stream)
                if not isinstance(engine, WebSocketEventStream):
                    await _send_error(websocket, "WebSocket mode is not enabled", mode=engine.mode.value)
                    continue
                state.manager.stream_created()
                state.producers.spawn(
                    stream_reply(engine, payload, delay_s=state.settings.DEMO_TOKEN_DELAY_S),
                    name=f"ws:{stream_key(service, stream)}",
                )
            else:
                logger.debug(f"protocol=websocket service={service} stream={stream} event=ignored type={kind}")
    except WebSocketDisconnect:
        pass
    finally:
        state.manager.disconnect_ws(service, stream, websocket)
        await log_connection("websocket:disconnect", service, stream)
