"""Fire-and-forget event delivery. Never raises into the caller.

Each sink is attempted once, independently of every other sink, with a
bounded total timeout. Failures become a failed DeliveryOutcome plus one
DeliveryFailure on the error sink. Nothing is retried or queued.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from collections import deque
from pathlib import Path
from typing import Any, Iterable, Protocol

import httpx

from .errors import DeliveryFailure, ErrorSink, report
from .models.event import AuditEvent, DeliveryOutcome

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class Sink(Protocol):
    name: str

    async def send(self, payload: dict[str, Any]) -> int | None: ...


class HttpSink:
    """POSTs the event JSON to a URL."""

    def __init__(self, url: str, engine: DeliveryEngine) -> None:
        self.url = url
        self.name = url
        self._engine = engine

    async def send(self, payload: dict[str, Any]) -> int | None:
        resp = await self._engine.client.post(
            self.url,
            json=payload,
            headers={"content-type": "application/json", "accept": "application/json"},
        )
        if not resp.is_success:
            text = resp.text[:200] or "Unknown error"
            raise DeliveryFailure(
                f"Audit sink {self.url} failed with status {resp.status_code}: {text}",
                sink=self.url,
                status_code=resp.status_code,
            )
        return resp.status_code


class LocalSink:
    """Keeps the most recent ``max_entries`` events, optionally mirrored to JSONL.

    The file holds the same bounded window as memory and is reloaded on
    construction, so a restarted process sees the events kept before it.
    File writes run in a worker thread and never block the event loop.
    """

    def __init__(self, max_entries: int = 100, path: Path | str | None = None) -> None:
        self.name = "local"
        self.max_entries = max_entries
        self.path = Path(path) if path else None
        self._entries: deque[dict[str, Any]] = deque(maxlen=max_entries)
        self._write_lock = threading.Lock()
        self._version = 0
        self._written = 0
        if self.path is not None:
            self._entries.extend(self._load())

    def _load(self) -> list[dict[str, Any]]:
        try:
            lines = self.path.read_text().splitlines()
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("Could not read local audit data %s: %s", self.path, exc)
            return []
        loaded = []
        for line in lines:
            if not line.strip():
                continue
            try:
                loaded.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping malformed line in %s", self.path)
        return loaded[-self.max_entries:]

    def _persist(self, snapshot: list[dict[str, Any]], version: int) -> None:
        with self._write_lock:
            # A newer snapshot (or a clear) already reached the file
            if version <= self._written:
                return
            self._written = version
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_name(self.path.name + ".tmp")
            with open(tmp, "w") as f:
                for entry in snapshot:
                    f.write(json.dumps(entry, separators=(",", ":")) + "\n")
            os.replace(tmp, self.path)

    async def send(self, payload: dict[str, Any]) -> int | None:
        self._entries.append(payload)
        if self.path is not None:
            self._version += 1
            await asyncio.to_thread(self._persist, list(self._entries), self._version)
        return None

    def entries(self) -> list[dict[str, Any]]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        if self.path is not None:
            with self._write_lock:
                self._version += 1
                self._written = self._version
                self.path.unlink(missing_ok=True)
        logger.info("Local audit data cleared")


class DeliveryEngine:
    """Ships events to sinks with bounded timeouts and failure isolation."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        on_error: ErrorSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.on_error = on_error
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    def http_sink(self, url: str) -> HttpSink:
        return HttpSink(url, self)

    async def deliver(self, event: AuditEvent, sink: Sink) -> DeliveryOutcome:
        """One attempt against one sink. Never raises."""
        try:
            status = await asyncio.wait_for(sink.send(event.to_wire()), timeout=self.timeout)
        except DeliveryFailure as exc:
            return self._failed(sink, exc, exc.status_code)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            exc = DeliveryFailure(f"Audit sink {sink.name} timed out after {self.timeout}s", sink=sink.name)
            return self._failed(sink, exc)
        except Exception as exc:
            failure = DeliveryFailure(f"Audit sink {sink.name} unreachable: {exc}", sink=sink.name)
            return self._failed(sink, failure)
        logger.debug("Delivered event %s to %s", event.session_id, sink.name)
        return DeliveryOutcome(sink=sink.name, ok=True, status_code=status)

    async def deliver_all(self, event: AuditEvent, sinks: Iterable[Sink]) -> list[DeliveryOutcome]:
        """Attempt every sink concurrently; one failure never blocks another."""
        return list(await asyncio.gather(*(self.deliver(event, sink) for sink in sinks)))

    def dispatch(self, event: AuditEvent, sinks: Iterable[Sink]) -> asyncio.Task:
        """Schedule delivery in the background and return immediately."""
        task = asyncio.get_running_loop().create_task(self.deliver_all(event, list(sinks)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight dispatches to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _failed(self, sink: Sink, exc: DeliveryFailure, status_code: int | None = None) -> DeliveryOutcome:
        report(self.on_error, exc)
        return DeliveryOutcome(sink=sink.name, ok=False, status_code=status_code, error=str(exc))
