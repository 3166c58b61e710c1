"""
MODULE OVERVIEW:
The durable per-stream event queue that backs short and long polling.

WHAT IS HAPPENING HERE:
Polling splits one logical stream across many HTTP requests, and each request may land in a
different worker process. The queue therefore cannot live in memory: every `append` and
`pop_front` is a full read-modify-write of a record on disk, serialized per key by an
exclusive `flock` that is held for that single cycle only.

The record is written to a temp file and `os.replace`d into place, so even a reader that
skipped the lock never sees half a JSON array. Unreadable records count as empty: losing one
read is better than wedging every future poll on a corrupt file.
"""
import fcntl
import json
import os
import threading
from collections import deque
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol

from loguru import logger


class QueueStore(Protocol):
    """Keyed FIFO of event dicts. Any atomic keyed store can stand behind this."""

    def append(self, key: str, event: dict[str, Any]) -> None: ...

    def pop_front(self, key: str) -> dict[str, Any] | None: ...


class FileQueueStore:
    def __init__(self, directory: str | Path):
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def append(self, key: str, event: dict[str, Any]) -> None:
        path = self.path_for(key)
        with self._locked(path):
            queue = self._load(path)
            queue.append(event)
            self._save(path, queue)

    def pop_front(self, key: str) -> dict[str, Any] | None:
        path = self.path_for(key)
        # Polls on a stream nobody produced into must not leave lock files behind.
        if not path.exists():
            return None
        with self._locked(path):
            queue = self._load(path)
            if not queue:
                return None
            head = queue.pop(0)
            self._save(path, queue)
            return head

    def peek_all(self, key: str) -> list[dict[str, Any]]:
        """Snapshot of the queue without consuming it."""
        path = self.path_for(key)
        if not path.exists():
            return []
        with self._locked(path):
            return self._load(path)

    @contextmanager
    def _locked(self, path: Path) -> Iterator[None]:
        lock_path = path.with_suffix(".lock")
        with lock_path.open("a+") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load(self, path: Path) -> list[dict[str, Any]]:
        try:
            raw = path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"queue={path.name} event=unreadable reason='{e}'")
            return []

        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"queue={path.name} event=corrupt reason=invalid_json")
            return []
        if not isinstance(data, list):
            logger.warning(f"queue={path.name} event=corrupt reason=not_a_list")
            return []

        events = [item for item in data if isinstance(item, dict)]
        if len(events) != len(data):
            logger.warning(f"queue={path.name} event=corrupt reason=non_object_entries dropped={len(data) - len(events)}")
        return events

    def _save(self, path: Path, queue: list[dict[str, Any]]) -> None:
        tmp_path = path.with_suffix(f".{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            tmp_path.write_text(json.dumps(queue, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise


class MemoryQueueStore:
    """Single-process stand-in: a dict of deques behind one mutex."""

    def __init__(self):
        self._queues: dict[str, deque[dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def append(self, key: str, event: dict[str, Any]) -> None:
        with self._lock:
            self._queues.setdefault(key, deque()).append(event)

    def pop_front(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            queue = self._queues.get(key)
            if not queue:
                return None
            head = queue.popleft()
            if not queue:
                del self._queues[key]
            return head

    def peek_all(self, key: str) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._queues.get(key, ()))


def build_queue_store(backend: str, directory: str | Path) -> QueueStore:
    if backend == "memory":
        return MemoryQueueStore()
    if backend != "file":
        logger.warning(f"queue_backend={backend} event=unknown reason=using_file")
    return FileQueueStore(directory)
