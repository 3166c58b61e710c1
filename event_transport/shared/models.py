"""
MODULE OVERVIEW:
This module defines the data structures shared by the server engines and the client channel,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
An Event is the only thing that ever travels through a transport: a `type` tag plus a JSON
object. Two tags are reserved. `done` is terminal and carries the final payload; `timeout`
(and `empty`, its short-poll cousin) are synthetic markers produced by a consumer call and
never written into a queue.
"""
import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TransportMode(str, Enum):
    NOSTREAM = "nostream"
    SHORT = "short"
    LONG = "long"
    SSE = "sse"
    WS = "ws"


DONE = "done"
TIMEOUT = "timeout"
EMPTY = "empty"

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_\-]")


def stream_key(service_name: str, stream_id: str) -> str:
    """Turn a (service, stream) identity into a token that is safe as a file name or cache key."""
    return _UNSAFE_KEY_CHARS.sub("_", f"{service_name}_{stream_id}")


class Event(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


def empty_marker() -> dict[str, Any]:
    return {"type": EMPTY}


def timeout_marker() -> dict[str, Any]:
    return {"type": TIMEOUT}


# WHAT IS HAPPENING HERE:
# The single-shot engine has no stream at all, so everything that was pushed is carried
# in one body next to the final payload.
class CombinedPayload(BaseModel):
    type: str = DONE
    events: list[Event]
    data: dict[str, Any]


class StartResponse(BaseModel):
    ok: bool = True
    mode: TransportMode


class BridgeTicket(BaseModel):
    ok: bool = True
    id: str
    stream: str


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str


class ConnectionStats(BaseModel):
    active_ws: int
    active_sse: int
    pending_long_polls: int
    total_streams_created: int
    uptime_s: float
    server_time: datetime
