"""Client tracker: time-on-route events for single-page applications.

Each change signal emits an event for the route being *left*, carrying
the whole seconds spent on it, then resets the current route and clock.
The landing route is emitted once with duration 0 right after activation.
Event building and delivery always run in background tasks, so navigation
handling never waits on geolocation or the network.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine

import httpx
from pydantic import ValidationError

from ..delivery import DEFAULT_TIMEOUT, DeliveryEngine, LocalSink, Sink
from ..errors import (
    AuditError,
    ConfigurationError,
    DuplicateInstance,
    EnvironmentMismatch,
    ErrorSink,
    report,
)
from ..geo import ClientGeoResolver
from ..models.event import ANONYMOUS, AuditEvent
from ..session import Clock, new_session_id, utc_timestamp
from .browser import BrowserEnvironment
from .navigation import NavigationInterceptor, NavigationState
from .registry import TrackerRegistry
from .registry import registry as default_registry

logger = logging.getLogger(__name__)

AUDIT_LOG_PATH = "/audit-log"


class AuditClient:
    """An active tracker bound to one browser environment."""

    def __init__(
        self,
        env: BrowserEnvironment,
        *,
        base_url: str,
        client_db_url: str | None,
        include_geo: bool,
        user_id: str,
        on_error: ErrorSink | None,
        delivery: DeliveryEngine,
        local_sink: LocalSink | None,
        registry: TrackerRegistry,
        clock: Clock,
        geo_timeout: float,
    ) -> None:
        self.env = env
        self.session_id = new_session_id()
        self.user_id = user_id or ANONYMOUS
        self.on_error = on_error
        self._delivery = delivery
        self._local_sink = local_sink
        self._registry = registry
        self._clock = clock
        self._loop = asyncio.get_running_loop()
        self._tasks: set[asyncio.Task] = set()
        self._geo = ClientGeoResolver(
            enabled=include_geo,
            geolocation=env.geolocation,
            timeout=geo_timeout,
            on_error=on_error,
        )

        self._sinks: list[Sink] = [delivery.http_sink(base_url.rstrip("/") + AUDIT_LOG_PATH)]
        if client_db_url:
            self._sinks.append(delivery.http_sink(client_db_url))
        if local_sink is not None:
            self._sinks.append(local_sink)

        self._interceptor = NavigationInterceptor(env, self._handle_route_change)
        self.current_route = env.location.pathname
        self._route_started = clock.start()

    @property
    def state(self) -> NavigationState:
        return self._interceptor.state

    def activate(self) -> None:
        self._interceptor.install()
        self._spawn(self.track(self.current_route, 0, timestamp=utc_timestamp()))
        logger.info("Audit tracker %s active on %s", self.session_id, self.current_route)

    async def track(
        self,
        route: str,
        duration: int = 0,
        *,
        event: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp: str | None = None,
    ) -> AuditEvent | None:
        """Build and deliver one event. Never raises; returns None if discarded.

        The event is stamped with ``timestamp`` (the moment of the navigation)
        or with the time of the call, never with the end of geolocation.
        """
        timestamp = timestamp or utc_timestamp()
        geo = await self._geo.resolve()
        try:
            activity = AuditEvent(
                timestamp=timestamp,
                session_id=self.session_id,
                user_id=self.user_id,
                route=route,
                duration=max(0, int(duration)),
                geo=geo,
                user_agent=self.env.navigator.user_agent,
                language=self.env.navigator.language,
                timezone=self.env.timezone,
                screen_resolution=self.env.screen_resolution,
                viewport=self.env.viewport_size,
                event=event,
                metadata=metadata,
            )
        except (ValidationError, TypeError, ValueError) as exc:
            report(self.on_error, AuditError(f"Discarded malformed audit event for {route}: {exc}"))
            return None

        await self._delivery.deliver_all(activity, self._sinks)
        return activity

    async def flush(self) -> None:
        """Wait until every scheduled event has been built and delivered."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._delivery.drain()

    def cleanup(self) -> None:
        """Remove listeners, restore history, free the guard slot. Idempotent."""
        if self._interceptor.state is NavigationState.TORN_DOWN:
            return
        self._interceptor.restore()
        self._registry.release(self.env, self)
        logger.info("Audit tracker %s torn down", self.session_id)

    async def aclose(self) -> None:
        self.cleanup()
        await self.flush()
        await self._delivery.aclose()

    def get_local_data(self) -> list[dict[str, Any]]:
        return self._local_sink.entries() if self._local_sink is not None else []

    def clear_local_data(self) -> None:
        if self._local_sink is None:
            return
        try:
            self._local_sink.clear()
        except OSError as exc:
            report(self.on_error, AuditError(f"Failed to clear local audit data: {exc}"))

    def _handle_route_change(self) -> None:
        duration = self._clock.elapsed(self._route_started)
        self._spawn(self.track(self.current_route, duration, timestamp=utc_timestamp()))
        self.current_route = self.env.location.pathname
        self._route_started = self._clock.start()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            report(self.on_error, AuditError(f"Audit tracking task failed: {task.exception()}"))


class NoopAuditClient:
    """Stand-in returned outside a browser environment. Does nothing."""

    session_id = ""
    state = NavigationState.UNINITIALIZED

    async def track(self, route: str, duration: int = 0, **kwargs: Any) -> None:
        return None

    async def flush(self) -> None:
        return None

    def cleanup(self) -> None:
        return None

    async def aclose(self) -> None:
        return None

    def get_local_data(self) -> list[dict[str, Any]]:
        return []

    def clear_local_data(self) -> None:
        return None


def create_audit_client(
    env: BrowserEnvironment | None,
    *,
    base_url: str | None = None,
    client_db_url: str | None = None,
    include_geo: bool = True,
    user_id: str = ANONYMOUS,
    on_error: ErrorSink | None = None,
    enable_local_storage: bool = False,
    local_storage_path: Path | str | None = None,
    registry: TrackerRegistry | None = None,
    clock: Clock | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    geo_timeout: float = 5.0,
) -> AuditClient | NoopAuditClient:
    """Create (or reuse) the tracker for ``env``.

    Raises ConfigurationError when ``base_url`` is missing. Everything else
    degrades: no environment or no running event loop gives a no-op tracker,
    and an already-active tracker for ``env`` is returned as is.
    """
    if not base_url:
        raise ConfigurationError("TriostackAudit: base_url is required")

    if env is None:
        report(on_error, EnvironmentMismatch("Not in browser environment, audit tracking disabled"))
        return NoopAuditClient()
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        report(on_error, EnvironmentMismatch("No running event loop, audit tracking disabled"))
        return NoopAuditClient()

    guard = registry if registry is not None else default_registry
    existing = guard.active(env)
    if existing is not None:
        report(on_error, DuplicateInstance("Client already initialized, returning existing instance"))
        return existing

    client = AuditClient(
        env,
        base_url=base_url,
        client_db_url=client_db_url,
        include_geo=include_geo,
        user_id=user_id,
        on_error=on_error,
        delivery=DeliveryEngine(timeout=timeout, on_error=on_error, transport=transport),
        local_sink=LocalSink(path=local_storage_path) if enable_local_storage else None,
        registry=guard,
        clock=clock or Clock(),
        geo_timeout=geo_timeout,
    )
    guard.claim(env, client)
    client.activate()
    return client
