"""Host browser binding.

A minimal model of the pieces of a browser tab the tracker depends on:
the window event bus, location, session history and navigator facts.
Embedders (webview bridges, headless drivers, tests) populate or subclass
it; the tracker only ever talks to this surface.
"""

from __future__ import annotations

import logging
from typing import Any, Callable
from urllib.parse import urlsplit

from ..geo import GeolocationProvider

logger = logging.getLogger(__name__)

Listener = Callable[[str], Any]


class Window:
    """Event bus for native (popstate) and synthetic navigation signals."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        """Remove ``listener``; unknown listeners are ignored, like the DOM."""
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            self._listeners.pop(event_type, None)

    def dispatch_event(self, event_type: str) -> None:
        for listener in list(self._listeners.get(event_type, [])):
            try:
                listener(event_type)
            except Exception as exc:
                logger.error("Listener for '%s' failed: %s", event_type, exc)

    def listener_count(self, event_type: str | None = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(ls) for ls in self._listeners.values())


class Location:
    def __init__(self, pathname: str = "/") -> None:
        self.pathname = pathname


class History:
    """Session history. push/replace are silent; back/forward fire popstate."""

    def __init__(self, window: Window, location: Location) -> None:
        self._window = window
        self._location = location
        self._entries: list[tuple[Any, str]] = [(None, location.pathname)]
        self._index = 0

    @property
    def length(self) -> int:
        return len(self._entries)

    @property
    def state(self) -> Any:
        return self._entries[self._index][0]

    def push_state(self, state: Any, title: str = "", url: str | None = None) -> None:
        path = self._resolve(url)
        del self._entries[self._index + 1:]
        self._entries.append((state, path))
        self._index += 1
        self._location.pathname = path

    def replace_state(self, state: Any, title: str = "", url: str | None = None) -> None:
        path = self._resolve(url)
        self._entries[self._index] = (state, path)
        self._location.pathname = path

    def go(self, delta: int) -> None:
        target = self._index + delta
        if delta == 0 or not 0 <= target < len(self._entries):
            return
        self._index = target
        self._location.pathname = self._entries[target][1]
        self._window.dispatch_event("popstate")

    def back(self) -> None:
        self.go(-1)

    def forward(self) -> None:
        self.go(1)

    def _resolve(self, url: str | None) -> str:
        if url is None:
            return self._location.pathname
        path = urlsplit(url).path
        if not path:
            return self._location.pathname
        if not path.startswith("/"):
            base = self._location.pathname.rsplit("/", 1)[0]
            path = f"{base}/{path}"
        return path


class Navigator:
    def __init__(self, user_agent: str = "unknown", language: str | None = None) -> None:
        self.user_agent = user_agent
        self.language = language


class BrowserEnvironment:
    """One browser tab as seen by the tracker."""

    def __init__(
        self,
        pathname: str = "/",
        user_agent: str = "unknown",
        language: str | None = None,
        timezone: str | None = None,
        screen: tuple[int, int] | None = None,
        viewport: tuple[int, int] | None = None,
        geolocation: GeolocationProvider | None = None,
    ) -> None:
        self.window = Window()
        self.location = Location(pathname)
        self.history = History(self.window, self.location)
        self.navigator = Navigator(user_agent, language)
        self.timezone = timezone
        self.screen = screen
        self.viewport = viewport
        self.geolocation = geolocation

    @property
    def screen_resolution(self) -> str | None:
        return f"{self.screen[0]}x{self.screen[1]}" if self.screen else None

    @property
    def viewport_size(self) -> str | None:
        return f"{self.viewport[0]}x{self.viewport[1]}" if self.viewport else None
