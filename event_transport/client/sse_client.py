"""
MODULE OVERVIEW:
Server-Sent Events client transport.

WHAT IS HAPPENING HERE:
We use HTTPX `stream()` to keep the response body open and parse the raw `event:` / `data:`
text frames ourselves, the same thing a browser EventSource does under the hood. Comment
frames (keep-alives, pings, padding) are skipped. Unlike EventSource we can POST, so the
initial payload goes in the body of the very request that streams back.
"""
from typing import Any

import httpx

from event_transport.client.base_client import BaseTransport
from event_transport.client.client_utils import iter_sse_messages

SSE_REQUEST_HEADERS = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}


class SseTransport(BaseTransport):
    mode: str = "sse"

    async def _consume(self, response: httpx.Response) -> None:
        response.raise_for_status()
        await self.emit_open()

        # A server that could not stream answers with the single-shot JSON body instead.
        if response.headers.get("content-type", "").startswith("application/json"):
            body = await response.aread()
            self.stats["bytes_received"] += len(body)
            await self.emit_message(response.json())
            return

        async for message in iter_sse_messages(self._count(response)):
            if not self._running:
                break
            await self.emit_message(message)
            if self.is_done(message):
                break

    async def _count(self, response: httpx.Response):
        async for chunk in response.aiter_text():
            self.stats["bytes_received"] += len(chunk)
            yield chunk

    async def _run(self, initial_payload: dict[str, Any]) -> None:
        self.stats["requests_sent"] += 1
        async with self.client.stream(
            "POST", self.http_url(), json=initial_payload, headers=SSE_REQUEST_HEADERS
        ) as response:
            await self._consume(response)


class PostSseTransport(SseTransport):
    """
    SSE through the POST-SSE bridge: the payload is parked server-side first, then the stream
    is opened with a plain GET on the one-time URL the bridge hands back.
    """

    mode: str = "sse"

    async def _run(self, initial_payload: dict[str, Any]) -> None:
        target = httpx.URL(self.http_url("sse"))
        endpoint = target.raw_path.decode("ascii")

        self.stats["requests_sent"] += 1
        ticket_response = await self.client.post(
            self.config.base_http_url.rstrip("/") + self.config.endpoints.get("postsse", "/postsse"),
            json={"endpoint": endpoint, "payload": initial_payload},
        )
        ticket = ticket_response.json()
        if not ticket or not ticket.get("ok") or not ticket.get("stream"):
            raise RuntimeError(f"postsse proxy failed: {ticket.get('error') if ticket else 'empty response'}")

        self.stats["requests_sent"] += 1
        async with self.client.stream("GET", ticket["stream"], headers=SSE_REQUEST_HEADERS) as response:
            await self._consume(response)
