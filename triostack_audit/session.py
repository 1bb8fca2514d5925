"""Session identifiers and the duration clock."""

from __future__ import annotations

import math
import time
import uuid
from datetime import datetime, timezone
from typing import Callable


def new_session_id() -> str:
    """Return a fresh UUID4 string, fixed for one tracker's lifetime."""
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Clock:
    """Monotonic clock measuring whole seconds between transitions."""

    def __init__(self, now: Callable[[], float] = time.monotonic) -> None:
        self._now = now

    def start(self) -> float:
        return self._now()

    def elapsed(self, since: float) -> int:
        """Seconds since ``since``, rounded half-up; skew clamps to 0."""
        delta = self._now() - since
        if delta <= 0:
            return 0
        return int(math.floor(delta + 0.5))
