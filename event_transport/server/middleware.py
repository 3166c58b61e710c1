"""
MODULE OVERVIEW:
Request timing for every HTTP route.

WHAT IS HAPPENING HERE:
`X-Process-Time-Ms` lets a client compare a short poll (milliseconds), a long poll (up to its
timeout) and a single-shot request (the whole producer run). For SSE and bridge responses
the figure is time-to-headers only: the body keeps streaming after the middleware returns.
"""
import time

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

PROCESS_TIME_HEADER = "X-Process-Time-Ms"
# Hit once per poll; logging each would drown everything else.
QUIET_PATHS = ("/event/short", "/event/long")


class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started_at = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started_at) * 1000

        response.headers[PROCESS_TIME_HEADER] = f"{elapsed_ms:.2f}"
        if not request.url.path.startswith(QUIET_PATHS):
            logger.debug(
                f"method={request.method} path={request.url.path} "
                f"status={response.status_code} ms={elapsed_ms:.2f}"
            )
        return response
