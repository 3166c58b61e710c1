"""
MODULE OVERVIEW:
The base class every client-side transport builds on.

WHAT IS HAPPENING HERE:
Application code only registers three callbacks (open, message, error) and calls
`connect(initial_payload)`. Each transport runs its loop inside `connect` until the `done`
message arrives, the channel is closed, or an error occurs. Errors are handed to the error
callback and end the loop; they never escape `connect`.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
from loguru import logger

from event_transport.client.client_utils import call_maybe_async, make_client_stats
from event_transport.client.config import ChannelConfig
from event_transport.shared.models import DONE


class BaseTransport(ABC):
    mode: str = "unknown"

    def __init__(
        self,
        config: ChannelConfig,
        service_name: str,
        stream_id: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.service_name = service_name
        self.stream_id = stream_id

        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=config.http_timeout_s)

        self._on_message: Callable[[dict[str, Any]], Any] | None = None
        self._on_open: Callable[[], Any] | None = None
        self._on_error: Callable[[Exception], Any] | None = None

        self.stats = make_client_stats()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def on_message(self, callback: Callable[[dict[str, Any]], Any]) -> None:
        self._on_message = callback

    def on_open(self, callback: Callable[[], Any]) -> None:
        self._on_open = callback

    def on_error(self, callback: Callable[[Exception], Any]) -> None:
        self._on_error = callback

    async def emit_open(self) -> None:
        await call_maybe_async(self._on_open)

    async def emit_message(self, message: dict[str, Any]) -> None:
        self.stats["messages_received"] += 1
        self.stats["last_message_at"] = datetime.now(timezone.utc).isoformat()
        await call_maybe_async(self._on_message, message)

    async def emit_error(self, error: Exception) -> None:
        logger.warning(f"protocol={self.mode} stream={self.stream_id} event=error reason='{error}'")
        await call_maybe_async(self._on_error, error)

    def http_url(self, mode: str | None = None) -> str:
        return self.config.build_http_url(mode or self.mode, self.service_name, self.stream_id)

    async def start_remote(self, initial_payload: dict[str, Any] | None) -> httpx.Response:
        """POST the initial payload to the mode's endpoint, which starts the server-side producer."""
        self.stats["requests_sent"] += 1
        response = await self.client.post(self.http_url(), json=initial_payload or {})
        response.raise_for_status()
        return response

    @staticmethod
    def is_done(message: dict[str, Any]) -> bool:
        return message.get("type") == DONE

    async def connect(self, initial_payload: dict[str, Any] | None = None) -> None:
        self._running = True
        try:
            await self._run(initial_payload or {})
        except Exception as e:
            await self.emit_error(e)
        finally:
            self._running = False
            await self._release()

    @abstractmethod
    async def _run(self, initial_payload: dict[str, Any]) -> None:
        """The actual protocol loop runs here."""

    async def send(self, data: dict[str, Any]) -> None:
        logger.warning(f"protocol={self.mode} event=send_unsupported")

    async def close(self) -> None:
        self._running = False
        await self._release()

    async def _release(self) -> None:
        if self._owns_client and not self.client.is_closed:
            await self.client.aclose()
