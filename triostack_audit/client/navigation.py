"""Navigation interception: one change signal for native and programmatic navigation.

``history.push_state`` and ``history.replace_state`` are wrapped so that,
after the original runs, a synthetic ``pushstate``/``replacestate`` signal
is dispatched on the window bus next to the native ``popstate``. Restore
puts the exact pre-patch callables back and removes every listener.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from .browser import BrowserEnvironment

logger = logging.getLogger(__name__)

# history method -> synthetic event it announces
PATCHED_METHODS = {
    "push_state": "pushstate",
    "replace_state": "replacestate",
}
NATIVE_EVENTS = ("popstate",)


class NavigationState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    TORN_DOWN = "torn_down"


class NavigationInterceptor:
    """Patches and restores the navigation primitives of one environment."""

    def __init__(self, env: BrowserEnvironment, on_change: Callable[[], None]) -> None:
        self.env = env
        self.on_change = on_change
        self.state = NavigationState.UNINITIALIZED
        self._listeners: list[tuple[str, Callable[[str], None]]] = []
        # method name -> (had instance attribute, previous value)
        self._originals: dict[str, tuple[bool, Any]] = {}

    def install(self) -> None:
        if self.state is not NavigationState.UNINITIALIZED:
            return

        events = NATIVE_EVENTS + tuple(PATCHED_METHODS.values())
        for event_type in events:
            listener = self._handle_signal
            self.env.window.add_event_listener(event_type, listener)
            self._listeners.append((event_type, listener))

        for method, event_type in PATCHED_METHODS.items():
            self._patch(method, event_type)

        self.state = NavigationState.ACTIVE
        logger.debug("Navigation interceptor active on %s", self.env.location.pathname)

    def restore(self) -> None:
        """Undo install(). Idempotent and safe before install()."""
        if self.state is NavigationState.TORN_DOWN:
            return

        for event_type, listener in self._listeners:
            self.env.window.remove_event_listener(event_type, listener)
        self._listeners.clear()

        history = self.env.history
        for method, (had_own, previous) in self._originals.items():
            if had_own:
                setattr(history, method, previous)
            else:
                # Drop the instance override so the class method shows through again
                vars(history).pop(method, None)
        self._originals.clear()

        self.state = NavigationState.TORN_DOWN

    def _patch(self, method: str, event_type: str) -> None:
        history = self.env.history
        original = getattr(history, method, None)
        if original is None:
            return
        self._originals[method] = (method in vars(history), vars(history).get(method))
        window = self.env.window

        def patched(*args: Any, **kwargs: Any) -> Any:
            result = original(*args, **kwargs)
            window.dispatch_event(event_type)
            return result

        patched.__wrapped__ = original  # type: ignore[attr-defined]
        setattr(history, method, patched)

    def _handle_signal(self, event_type: str) -> None:
        if self.state is NavigationState.ACTIVE:
            self.on_change()
