"""Shared fixtures: a controllable clock and a recording HTTP transport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from triostack_audit.client import BrowserEnvironment, TrackerRegistry
from triostack_audit.session import Clock


class FakeClock(Clock):
    """Clock whose time only moves when advanced."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        super().__init__(lambda: self.now)

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """Mock transport that records every POST body per URL.

    ``statuses`` maps a URL to the status to answer with; ``failures`` maps
    a URL to an exception to raise; ``delay`` stalls every request.
    """

    def __init__(self, statuses=None, failures=None, delay: float = 0.0) -> None:
        self.statuses: dict[str, int] = statuses or {}
        self.failures: dict[str, Exception] = failures or {}
        self.delay = delay
        self.requests: list[tuple[str, dict]] = []
        super().__init__(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url in self.failures:
            raise self.failures[url]
        self.requests.append((url, json.loads(request.content)))
        status = self.statuses.get(url, 200)
        return httpx.Response(status, json={"success": status < 400})

    def bodies(self, url: str) -> list[dict]:
        return [body for u, body in self.requests if u == url]


class ErrorCollector:
    """Error sink that keeps what it is given."""

    def __init__(self) -> None:
        self.errors: list[Exception] = []

    def __call__(self, err: Exception) -> None:
        self.errors.append(err)

    def of_type(self, cls: type) -> list[Exception]:
        return [e for e in self.errors if isinstance(e, cls)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def errors():
    return ErrorCollector()


@pytest.fixture
def env():
    return BrowserEnvironment(
        pathname="/a",
        user_agent="Mozilla/5.0 (TestBrowser)",
        language="en-US",
        timezone="Europe/London",
        screen=(1920, 1080),
        viewport=(1280, 720),
    )


@pytest.fixture
def tracker_registry():
    return TrackerRegistry()
