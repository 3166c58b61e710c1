"""
MODULE OVERVIEW:
Client-side transport resolution.

WHAT IS HAPPENING HERE:
The candidate walk is the exact function the server's stream factory uses
(`shared.negotiation.resolve_transport`); only the availability probes differ. On this side a
mode is available when we know where to reach it: SSE needs an `sse` endpoint, WebSocket needs
a WebSocket URL. Polling and single-shot only need the HTTP base URL, which always exists.
With `sse_via_bridge` the SSE stream is opened through the POST-SSE bridge instead of a
streamed POST.
"""
import httpx

from event_transport.client.base_client import BaseTransport
from event_transport.client.config import ChannelConfig
from event_transport.client.long_poll_client import LongPollingTransport
from event_transport.client.nostream_client import NoStreamTransport
from event_transport.client.short_poll_client import ShortPollingTransport
from event_transport.client.sse_client import PostSseTransport, SseTransport
from event_transport.client.websocket_client import WebSocketTransport
from event_transport.shared.models import TransportMode
from event_transport.shared.negotiation import resolve_transport


class TransportResolver:
    @classmethod
    def create_channel(
        cls,
        config: ChannelConfig,
        service_name: str,
        stream_id: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> BaseTransport:
        """Try `config.mode` first, then `config.fallback_modes`, then single-shot."""
        return resolve_transport(
            config.mode,
            config.fallback_modes,
            lambda mode: cls.create_transport_by_mode(mode, config, service_name, stream_id, http_client),
            lambda: NoStreamTransport(config, service_name, stream_id, http_client=http_client),
            side="client",
        )

    @staticmethod
    def create_transport_by_mode(
        mode: str,
        config: ChannelConfig,
        service_name: str,
        stream_id: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> BaseTransport | None:
        if mode == TransportMode.NOSTREAM.value:
            return NoStreamTransport(config, service_name, stream_id, http_client=http_client)

        if mode == TransportMode.SHORT.value:
            return ShortPollingTransport(config, service_name, stream_id, http_client=http_client)

        if mode == TransportMode.LONG.value:
            return LongPollingTransport(config, service_name, stream_id, http_client=http_client)

        if mode == TransportMode.SSE.value:
            if not config.endpoints.get("sse"):
                return None
            if config.sse_via_bridge and config.endpoints.get("postsse"):
                return PostSseTransport(config, service_name, stream_id, http_client=http_client)
            return SseTransport(config, service_name, stream_id, http_client=http_client)

        if mode == TransportMode.WS.value:
            if not config.web_socket_url:
                return None
            return WebSocketTransport(config, service_name, stream_id, http_client=http_client)

        return None
