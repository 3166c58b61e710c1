"""
MODULE OVERVIEW:
Client-side channel configuration.

WHAT IS HAPPENING HERE:
The client mirrors the server's negotiation, so it needs the same vocabulary: a preferred mode
and an ordered fallback list. On top of that it needs to know where each mode lives: one HTTP
endpoint per HTTP-based mode under a common base URL, and an optional WebSocket URL. A missing
WebSocket URL is what makes WebSocket mode unavailable on this side.
"""
from urllib.parse import urlencode

from pydantic import BaseModel, Field


def _default_endpoints() -> dict[str, str]:
    return {
        "nostream": "/nostream",
        "short": "/short",
        "long": "/long",
        "sse": "/sse",
        "postsse": "/postsse",
    }


class ChannelConfig(BaseModel):
    mode: str = "nostream"
    fallback_modes: list[str] = Field(default_factory=lambda: ["short", "long", "nostream"])
    base_http_url: str = "http://127.0.0.1:8000/event"
    endpoints: dict[str, str] = Field(default_factory=_default_endpoints)
    web_socket_url: str | None = None
    # EventSource-style consumers: park the payload with the POST-SSE bridge, then GET the stream.
    sse_via_bridge: bool = False
    short_poll_interval_ms: int = 120
    # Must stay above the server's long-poll timeout, or every empty wait looks like a network error.
    http_timeout_s: float = 35.0

    def _identity_query(self, service_name: str, stream_id: str) -> str:
        return urlencode({"service": service_name, "stream": stream_id})

    def build_http_url(self, mode: str, service_name: str, stream_id: str) -> str:
        base = self.base_http_url.rstrip("/") + self.endpoints.get(mode, "")
        return f"{base}?{self._identity_query(service_name, stream_id)}"

    def build_web_socket_url(self, service_name: str, stream_id: str) -> str | None:
        if not self.web_socket_url:
            return None
        return f"{self.web_socket_url}?{self._identity_query(service_name, stream_id)}"
