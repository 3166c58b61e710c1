"""
CLI entrypoint for the event transport server and client.
"""
import asyncio
import sys
import uuid

import typer
from loguru import logger

from event_transport.client.config import ChannelConfig
from event_transport.client.resolver import TransportResolver
from event_transport.client.visualizer import Visualizer
from event_transport.shared.config import settings

app = typer.Typer(help="Event Transport CLI Manager")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@app.command()
def server(
    host: str = typer.Option("0.0.0.0", help="Interface to bind"),
    port: int = typer.Option(settings.PORT, help="Port to listen on"),
):
    """Start the FastAPI backend server using Uvicorn."""
    import uvicorn
    configure_logging(settings.LOG_LEVEL)
    typer.echo(f"Starting server on port {port} (mode={settings.DEFAULT_MODE}, fallback={settings.FALLBACK_ORDER})...")
    uvicorn.run("event_transport.server.main:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())


@app.command()
def client(
    mode: str = typer.Option("sse", help="Preferred mode: nostream, short, long, sse, ws"),
    fallback: list[str] = typer.Option(["short", "long", "nostream"], help="Fallback modes, in order"),
    prompt: str = typer.Option("Hello", help="Prompt sent as the initial payload"),
    service: str = typer.Option("chatbot", help="Service name of the stream"),
    stream: str = typer.Option(None, help="Stream id (a fresh one is generated by default)"),
    ws_url: str = typer.Option(None, help="WebSocket URL; without it WebSocket mode is unavailable"),
    interval_ms: int = typer.Option(settings.SHORT_POLL_INTERVAL_MS, help="Short polling interval"),
    base_url: str = typer.Option(None, help="HTTP base of the event routes"),
    bridge: bool = typer.Option(False, help="Open SSE through the POST-SSE bridge"),
):
    """Resolve a channel, stream one reply and show it in the live console."""
    configure_logging("WARNING")
    base_url = base_url or f"http://127.0.0.1:{settings.PORT}/event"
    config = ChannelConfig(
        mode=mode,
        fallback_modes=fallback,
        base_http_url=base_url,
        web_socket_url=ws_url,
        short_poll_interval_ms=interval_ms,
        sse_via_bridge=bridge,
    )
    stream_id = stream or uuid.uuid4().hex
    channel = TransportResolver.create_channel(config, service, stream_id)

    visualizer = Visualizer(channel)
    try:
        asyncio.run(visualizer.run({"prompt": prompt}))
    except KeyboardInterrupt:
        pass


@app.command()
def stats():
    """Query the server for live connection stats."""
    import httpx
    resp = httpx.get(f"http://127.0.0.1:{settings.PORT}/stats")
    typer.echo(resp.json())


if __name__ == "__main__":
    app()
