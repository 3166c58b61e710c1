"""
MODULE OVERVIEW:
The POST-SSE bridge: SSE for streams that need a POST body to start.

WHAT IS HAPPENING HERE:
1. The browser POSTs `{"endpoint": "/event/sse?...", "payload": {...}}` to the proxy route.
   We park it in the hand-off store and answer with a one-time stream URL.
2. The browser opens an EventSource on that URL. We take the record (it is gone afterwards),
   POST the payload to the real endpoint and forward its body byte for byte.

The bridge adds no `done` of its own: the upstream service sends it. An unknown or expired id
still gets a well-formed SSE answer, an `error` frame.
"""
from typing import AsyncIterator
from urllib.parse import urljoin, urlsplit

import httpx
from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse
from loguru import logger

from event_transport.server.route_utils import read_json_object
from event_transport.server.streams.sse import INITIAL_FRAME, encode_event
from event_transport.shared.errors import MalformedPayloadError
from event_transport.shared.models import BridgeTicket

router = APIRouter(prefix="/event/postsse")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


@router.post("", response_model=BridgeTicket)
async def postsse_proxy(request: Request):
    data = await read_json_object(request, allow_empty=False)

    endpoint = str(data.get("endpoint") or "").strip()
    payload = data.get("payload", {})
    if not endpoint or not isinstance(payload, dict):
        raise MalformedPayloadError("Missing endpoint or payload")

    # Only paths on this server: the bridge must not become an open proxy.
    parts = urlsplit(endpoint)
    if parts.scheme or parts.netloc:
        raise MalformedPayloadError("Endpoint must be a path on this server")

    handoff_id = request.app.state.handoffs.create({"endpoint": endpoint, "payload": payload})
    stream_url = request.url_for("postsse_stream").include_query_params(id=handoff_id)
    return BridgeTicket(id=handoff_id, stream=str(stream_url))


async def _error_frames(message: str) -> AsyncIterator[bytes]:
    yield INITIAL_FRAME
    yield encode_event("error", {"error": message})


async def _forward(
    request: Request, client: httpx.AsyncClient, url: str, payload: dict
) -> AsyncIterator[bytes]:
    yield INITIAL_FRAME

    headers = {"Accept": "text/event-stream"}
    cookie = request.headers.get("cookie")
    if cookie:
        headers["Cookie"] = cookie

    try:
        async with client.stream("POST", url, json=payload, headers=headers) as upstream:
            async for chunk in upstream.aiter_raw():
                if await request.is_disconnected():
                    logger.info(f"bridge_url={url} event=client_gone")
                    break
                yield chunk
    except httpx.HTTPError as e:
        logger.warning(f"bridge_url={url} event=upstream_error reason='{e}'")
        yield encode_event("error", {"error": "Upstream stream failed"})
    finally:
        await client.aclose()


@router.get("/stream", name="postsse_stream")
async def postsse_stream(request: Request, id: str = Query("")):
    entry = request.app.state.handoffs.take(id)
    if entry is None or not entry.get("endpoint"):
        return StreamingResponse(
            _error_frames("Invalid or expired stream id"),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    url = urljoin(str(request.base_url), str(entry["endpoint"]).lstrip("/"))
    client = request.app.state.http_client_factory()
    return StreamingResponse(
        _forward(request, client, url, entry.get("payload") or {}),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
