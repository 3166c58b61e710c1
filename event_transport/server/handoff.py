"""
MODULE OVERVIEW:
Single-use hand-off records for the POST-SSE bridge.

WHAT IS HAPPENING HERE:
EventSource can only GET, but some streams need a POST body to start. The bridge parks the
body here under a random id, gives the browser a stream URL carrying that id, and the GET
request takes the record back exactly once.

Records live as files so that the POST and the GET may be served by different workers.
`take` claims a record by renaming it: rename is atomic, so when two requests race for the
same id only one of them gets it. Records older than the TTL are treated as absent and
removed when touched.
"""
import json
import os
import secrets
import time
from pathlib import Path
from typing import Any

from loguru import logger


class HandoffStore:
    def __init__(self, directory: str | Path, ttl_s: float = 300.0):
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self.ttl_s = ttl_s

    def _path(self, handoff_id: str) -> Path:
        return self._dir / f"handoff_{handoff_id}.json"

    def create(self, record: dict[str, Any]) -> str:
        handoff_id = secrets.token_hex(16)
        path = self._path(handoff_id)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps({"created": time.time(), "record": record}, ensure_ascii=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, path)
        logger.debug(f"handoff={handoff_id} event=created")
        return handoff_id

    def take(self, handoff_id: str) -> dict[str, Any] | None:
        # Ids are hex tokens we minted; anything else cannot name a record.
        if not handoff_id or not all(c in "0123456789abcdef" for c in handoff_id):
            return None

        path = self._path(handoff_id)
        claimed = path.with_suffix(f".claimed.{os.getpid()}")
        try:
            os.rename(path, claimed)
        except FileNotFoundError:
            return None

        try:
            envelope = json.loads(claimed.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"handoff={handoff_id} event=unreadable reason='{e}'")
            return None
        finally:
            claimed.unlink(missing_ok=True)

        created = envelope.get("created") if isinstance(envelope, dict) else None
        record = envelope.get("record") if isinstance(envelope, dict) else None
        if not isinstance(created, (int, float)) or not isinstance(record, dict):
            logger.warning(f"handoff={handoff_id} event=unreadable reason=bad_envelope")
            return None

        if time.time() - created > self.ttl_s:
            logger.info(f"handoff={handoff_id} event=expired")
            return None
        logger.debug(f"handoff={handoff_id} event=taken")
        return record
