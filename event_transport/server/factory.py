"""
MODULE OVERVIEW:
The stream factory: the only way request-handling code obtains an engine.

WHAT IS HAPPENING HERE:
`create_stream` walks the configured mode and the fallback order through the shared
negotiation algorithm. Each mode is probed for availability in this runtime:

  nostream, short, long  -> always available (the queue store has no external dependency)
  sse                    -> only if the runtime can hold a streaming response open
  ws                     -> only if a resolver hands back a live connection for the identity

When nothing is available the single-shot engine is returned unconditionally, even if
"nostream" is missing from the fallback order.
"""
from typing import Any

from loguru import logger

from event_transport.server.connection_manager import WebSocketConnectionResolver
from event_transport.server.queue_store import QueueStore
from event_transport.server.streams.base import EventStream
from event_transport.server.streams.long_polling import LongPollingEventStream
from event_transport.server.streams.nostream import NoStreamEventStream
from event_transport.server.streams.short_polling import ShortPollingEventStream
from event_transport.server.streams.sse import SseEventStream
from event_transport.server.streams.websocket import WebSocketEventStream
from event_transport.shared.config import Settings, TransportConfig
from event_transport.shared.models import TransportMode
from event_transport.shared.negotiation import resolve_transport


class EventStreamFactory:
    def __init__(
        self,
        config: TransportConfig,
        store: QueueStore,
        ws_resolver: WebSocketConnectionResolver | None = None,
        sse_supported: bool = True,
        sse_padding_every: int = 0,
        sse_padding_bytes: int = 2048,
        sse_ping_interval_s: float = 15.0,
        long_poll_sleep_s: float = 0.05,
    ):
        self.config = config
        self.store = store
        self.ws_resolver = ws_resolver
        self.sse_supported = sse_supported
        self.sse_padding_every = sse_padding_every
        self.sse_padding_bytes = sse_padding_bytes
        self.sse_ping_interval_s = sse_ping_interval_s
        self.long_poll_sleep_s = long_poll_sleep_s

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: QueueStore,
        ws_resolver: WebSocketConnectionResolver | None = None,
    ) -> "EventStreamFactory":
        return cls(
            settings.transport_config(),
            store,
            ws_resolver=ws_resolver,
            sse_supported=settings.SSE_SUPPORTED,
            sse_padding_every=settings.SSE_PADDING_EVERY,
            sse_padding_bytes=settings.SSE_PADDING_BYTES,
            sse_ping_interval_s=settings.SSE_PING_INTERVAL_S,
            long_poll_sleep_s=settings.LONG_POLL_SLEEP_S,
        )

    def create_stream(self, service_name: str, stream_id: str, request: Any = None) -> EventStream:
        """Build the first available engine for the identity.

        `request` is only used by the SSE engine, as its disconnect signal.
        """
        return resolve_transport(
            self.config.default_mode,
            self.config.fallback_order,
            lambda mode: self.create_by_mode(mode, service_name, stream_id, request),
            NoStreamEventStream,
            auto_fallback=self.config.auto_fallback_enabled,
        )

    def create_by_mode(
        self, mode: str, service_name: str, stream_id: str, request: Any = None
    ) -> EventStream | None:
        """Construct the engine for one mode, or None if it is unavailable here."""
        if mode == TransportMode.NOSTREAM.value:
            return NoStreamEventStream()

        if mode == TransportMode.SHORT.value:
            return ShortPollingEventStream(service_name, stream_id, self.store)

        if mode == TransportMode.LONG.value:
            return LongPollingEventStream(
                service_name, stream_id, self.store, sleep_s=self.long_poll_sleep_s
            )

        if mode == TransportMode.SSE.value:
            if not self.sse_supported:
                return None
            return SseEventStream(
                request,
                padding_every=self.sse_padding_every,
                padding_bytes=self.sse_padding_bytes,
                ping_interval_s=self.sse_ping_interval_s,
            )

        if mode == TransportMode.WS.value:
            if self.ws_resolver is None:
                return None
            connection = self.ws_resolver.resolve(service_name, stream_id)
            if connection is None:
                return None
            return WebSocketEventStream(connection)

        logger.debug(f"mode={mode} event=unknown_mode")
        return None

    # Consumer side: poll endpoints need an engine of a fixed mode, whatever the config says.
    def short_poll_consumer(self, service_name: str, stream_id: str) -> ShortPollingEventStream:
        return ShortPollingEventStream(service_name, stream_id, self.store)

    def long_poll_consumer(self, service_name: str, stream_id: str) -> LongPollingEventStream:
        return LongPollingEventStream(
            service_name, stream_id, self.store, sleep_s=self.long_poll_sleep_s
        )
