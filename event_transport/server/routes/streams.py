"""
MODULE OVERVIEW:
Producer-side routes: start a stream for a (service, stream) identity.

WHAT IS HAPPENING HERE:
The route never picks a transport itself. It asks the factory, which applies the process-wide
mode and fallback order, and then adapts the HTTP response to what came back:

  single-shot  -> run the producer to completion, answer with the combined JSON body
  sse          -> run the producer in the background, answer with the held-open event stream
  short / long -> run the producer in the background, answer {"ok": true, "mode": ...};
                  the client collects events from the poll routes
  ws           -> same as polling; events travel over the already-open socket
"""
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response

from event_transport.server.demo_service import stream_reply
from event_transport.server.route_utils import log_connection, read_json_object
from event_transport.server.streams.nostream import NoStreamEventStream
from event_transport.server.streams.sse import SseEventStream
from event_transport.shared.models import StartResponse, TransportMode, stream_key

router = APIRouter(prefix="/event")


async def serve_stream(request: Request, service: str, stream: str, payload: dict) -> Response:
    state = request.app.state
    engine = state.factory.create_stream(service, stream, request=request)
    state.manager.stream_created()
    await log_connection(f"{engine.mode.value}:start", service, stream)

    producer = stream_reply(engine, payload, delay_s=state.settings.DEMO_TOKEN_DELAY_S)

    if isinstance(engine, NoStreamEventStream):
        await producer
        return engine.response()

    state.producers.spawn(producer, name=f"{engine.mode.value}:{stream_key(service, stream)}")

    if isinstance(engine, SseEventStream):
        state.manager.sse_opened(service, stream)
        return engine.response(on_close=lambda: state.manager.sse_closed(service, stream))

    return JSONResponse(StartResponse(mode=engine.mode).model_dump(mode="json"))


@router.post("/{mode}")
async def start_stream(
    mode: TransportMode,
    request: Request,
    service: str = Query(..., description="Logical service name, e.g. 'chatbot'"),
    stream: str = Query(..., description="Stream id, unique within the service"),
):
    payload = await read_json_object(request)
    return await serve_stream(request, service, stream, payload)


@router.get("/sse")
async def sse_stream(
    request: Request,
    service: str = Query(...),
    stream: str = Query(...),
    prompt: str | None = Query(None, description="EventSource cannot POST, so the prompt rides in the URL"),
):
    payload = {"prompt": prompt} if prompt is not None else {}
    return await serve_stream(request, service, stream, payload)
