import inspect
import json
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable


def make_client_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every transport calls this once in __init__.
    """
    return {
        "messages_received": 0,
        "empty_responses": 0,
        "requests_sent": 0,
        "bytes_received": 0,
        "last_message_at": None,
        "connected_at": datetime.now(timezone.utc).isoformat()
    }


async def call_maybe_async(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke a user callback that may be a plain function or a coroutine function."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def parse_sse_block(block: str) -> dict[str, Any] | None:
    """
    Turn one SSE block (the text between two blank lines) into `{"type", "data"}`.
    Comment-only and blank blocks return None. Data that is not JSON is passed through as text.
    """
    event_type = "message"
    data_lines: list[str] = []

    for line in block.split("\n"):
        line = line.rstrip("\r")
        if not line or line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_type = value
        elif field == "data":
            data_lines.append(value)

    if not data_lines:
        return None

    raw = "\n".join(data_lines)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = raw
    return {"type": event_type, "data": data}


async def iter_sse_messages(chunks: AsyncIterator[str]) -> AsyncIterator[dict[str, Any]]:
    """Reassemble streamed text chunks into SSE messages."""
    buffer = ""
    async for chunk in chunks:
        buffer += chunk.replace("\r\n", "\n")
        while "\n\n" in buffer:
            block, buffer = buffer.split("\n\n", 1)
            message = parse_sse_block(block)
            if message is not None:
                yield message

    message = parse_sse_block(buffer)
    if message is not None:
        yield message
