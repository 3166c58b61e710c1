"""
MODULE OVERVIEW:
Consumer-side polling routes. Each call pops at most one event from the stream's queue.

WHAT IS HAPPENING HERE:
Short poll answers immediately: the next event or `{"type": "empty"}`. Long poll holds the
request open, re-checking the queue, until an event arrives or the timeout elapses and
`{"type": "timeout"}` is returned. Neither marker is ever written to the queue.
"""
from fastapi import APIRouter, Query, Request, Response

from event_transport.server.route_utils import log_connection
from event_transport.shared.models import empty_marker

router = APIRouter(prefix="/event")


@router.get("/short")
async def short_poll(
    request: Request,
    response: Response,
    service: str = Query(...),
    stream: str = Query(...),
):
    state = request.app.state
    consumer = state.factory.short_poll_consumer(service, stream)
    event = await consumer.poll_next()

    response.headers["X-Poll-Interval"] = str(state.settings.SHORT_POLL_INTERVAL_MS)
    return event if event is not None else empty_marker()


@router.get("/long")
async def long_poll(
    request: Request,
    service: str = Query(...),
    stream: str = Query(...),
    timeout: float | None = Query(None, ge=0, description="Wait duration before timing out"),
):
    state = request.app.state
    timeout_s = state.settings.LONG_POLL_TIMEOUT_S if timeout is None else timeout
    consumer = state.factory.long_poll_consumer(service, stream)

    state.manager.long_poll_started()
    try:
        event = await consumer.wait_next(timeout_s)
    finally:
        state.manager.long_poll_ended()

    await log_connection("long_poll:answer", service, stream, {"type": event.get("type")})
    return event
