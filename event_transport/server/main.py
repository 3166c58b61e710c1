"""
MODULE OVERVIEW:
The FastAPI application Factory.

WHAT IS HAPPENING HERE:
`create_app` wires the collaborators that every route reaches through `request.app.state`:
the queue store, the connection registry (which doubles as the WebSocket connection resolver),
the stream factory, the POST-SSE hand-off store and the set of background producers.

We use a `lifespan` context manager. When the server shuts down, producers that are still
streaming are cancelled and awaited, so nothing outlives the process cleanly shutting down.
"""
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from event_transport.server.connection_manager import ConnectionManager
from event_transport.server.factory import EventStreamFactory
from event_transport.server.handoff import HandoffStore
from event_transport.server.middleware import TimingMiddleware
from event_transport.server.queue_store import build_queue_store
from event_transport.server.route_utils import ProducerTasks
from event_transport.server.routes import polling, postsse, streams, websocket
from event_transport.shared.config import Settings, settings as default_settings
from event_transport.shared.errors import MalformedPayloadError
from event_transport.shared.models import ConnectionStats, ErrorResponse


def _default_http_client() -> httpx.AsyncClient:
    # No read timeout: the bridged upstream is a stream that may stay quiet for a while.
    return httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MalformedPayloadError)
    async def malformed_payload_handler(request: Request, exc: MalformedPayloadError):
        logger.info(f"{request.method} {request.url.path} event=rejected reason='{exc}'")
        return JSONResponse(ErrorResponse(error=str(exc)).model_dump(), status_code=400)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
        message = f"Invalid request: {fields}" if fields else "Invalid request"
        return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=400)


def create_app(config: Settings | None = None, http_client_factory=None) -> FastAPI:
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # STARTUP
        logger.info(
            f"Event transport server starting up: mode={config.DEFAULT_MODE} "
            f"fallback={config.FALLBACK_ORDER} queue={config.QUEUE_BACKEND}"
        )

        yield

        # SHUTDOWN
        logger.info(f"Server shutting down. Cancelling {len(app.state.producers)} producers...")
        await app.state.producers.shutdown()
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="Event Transport",
        description="Ordered event streams over nostream, short/long polling, SSE and WebSocket",
        version="1.0.0",
        lifespan=lifespan
    )

    manager = ConnectionManager()
    store = build_queue_store(config.QUEUE_BACKEND, config.QUEUE_DIR)

    app.state.settings = config
    app.state.manager = manager
    app.state.factory = EventStreamFactory.from_settings(config, store, ws_resolver=manager)
    app.state.handoffs = HandoffStore(Path(config.QUEUE_DIR) / "handoff", ttl_s=config.HANDOFF_TTL_S)
    app.state.producers = ProducerTasks()
    app.state.http_client_factory = http_client_factory or _default_http_client

    # Add Middlewares
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    # Route registrations. The bridge goes first: POST /event/{mode} would swallow /event/postsse.
    app.include_router(postsse.router, tags=["Bridge"])
    app.include_router(polling.router, tags=["Consumers"])
    app.include_router(streams.router, tags=["Producers"])
    app.include_router(websocket.router, tags=["Producers"])

    @app.get("/healthz", tags=["Ops"])
    async def health_check():
        return {"status": "ok"}

    @app.get("/stats", tags=["Ops"], response_model=ConnectionStats)
    async def get_stats():
        return manager.get_stats()

    return app


app = create_app()
