import asyncio
import json
from typing import Any, Coroutine

from fastapi import Request
from loguru import logger

from event_transport.shared.errors import MalformedPayloadError


async def log_connection(protocol: str, service_name: str, stream_id: str, extra: dict | None = None) -> None:
    """
    Single structured log entry for a connect/disconnect on any transport.
    Writes: protocol, service, stream, and any extra fields.
    """
    log_str = f"protocol={protocol} service={service_name} stream={stream_id}"
    for k, v in (extra or {}).items():
        log_str += f" {k}={v}"
    logger.info(log_str)


async def read_json_object(request: Request, allow_empty: bool = True) -> dict[str, Any]:
    """
    Parse the request body as a JSON object.
    An empty body counts as `{}`; anything else that is not an object raises MalformedPayloadError.
    """
    raw = await request.body()
    if not raw.strip():
        if allow_empty:
            return {}
        raise MalformedPayloadError("Invalid JSON payload")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise MalformedPayloadError("Invalid JSON payload")
    if not isinstance(data, dict):
        raise MalformedPayloadError("Invalid JSON payload")
    return data


class ProducerTasks:
    """
    Keeps strong references to background producers so they are not garbage collected
    mid-stream, and cancels whatever is still running on shutdown.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        task = asyncio.create_task(self._run(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.debug(f"producer={name} event=cancelled")
        except Exception as e:
            logger.error(f"producer={name} event=error reason='{e}'")

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
