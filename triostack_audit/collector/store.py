"""In-memory event store with optional append-only JSONL persistence."""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class EventStore:
    """Bounded store of received audit events, newest last."""

    def __init__(self, max_events: int = 1000, log_path: Path | str | None = None) -> None:
        self._events: deque[dict[str, Any]] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self.log_path = Path(log_path) if log_path else None

    def add(self, event: dict[str, Any]) -> dict[str, Any]:
        record = {**event, "receivedAt": datetime.now(timezone.utc).isoformat()}
        with self._lock:
            self._events.append(record)
        if self.log_path is not None:
            try:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.log_path, "a") as f:
                    f.write(json.dumps(record, separators=(",", ":")) + "\n")
            except OSError as exc:
                logger.warning("Failed to persist audit event: %s", exc)
        return record

    def list(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def clear(self) -> int:
        with self._lock:
            count = len(self._events)
            self._events.clear()
        return count

    def __len__(self) -> int:
        return len(self._events)
