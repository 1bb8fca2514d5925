"""Instance guard: at most one active tracker per browser environment.

The registry is owned by the caller. A module-level default exists for
embedders that only ever run one tab per process.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .tracker import AuditClient

logger = logging.getLogger(__name__)


class TrackerRegistry:
    """Registry of active trackers keyed by environment."""

    def __init__(self) -> None:
        # id(env) -> (env, tracker); env is held so its id cannot be reused
        self._active: dict[int, tuple[Any, AuditClient]] = {}

    def active(self, env: Any) -> AuditClient | None:
        entry = self._active.get(id(env))
        return entry[1] if entry else None

    def claim(self, env: Any, tracker: AuditClient) -> None:
        """Register ``tracker`` for ``env``. Raises if the slot is taken."""
        current = self.active(env)
        if current is not None and current is not tracker:
            raise RuntimeError("A tracker is already active for this environment")
        self._active[id(env)] = (env, tracker)
        logger.debug("Tracker %s claimed environment slot", tracker.session_id)

    def release(self, env: Any, tracker: AuditClient) -> None:
        """Free the slot if ``tracker`` still owns it."""
        if self.active(env) is tracker:
            del self._active[id(env)]
            logger.debug("Tracker %s released environment slot", tracker.session_id)

    def __len__(self) -> int:
        return len(self._active)


# Module-level default registry
registry = TrackerRegistry()
