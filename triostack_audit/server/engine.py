"""Server audit engine: per-request event assembly and delivery.

The framework adapters in ``adapters.py`` only capture timing, status and
sizes; every event is built here so all adapters produce identical events
for the same request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

import httpx
from fastapi import Request
from pydantic import ValidationError

from ..config import config
from ..delivery import DeliveryEngine
from ..errors import AuditError, ConfigurationError, ErrorSink, report
from ..geo import GeoLookup, MaxMindLookup, ServerGeoResolver, extract_client_ip
from ..models.event import ANONYMOUS, UNKNOWN, AuditEvent
from ..session import Clock, new_session_id

if TYPE_CHECKING:
    from starlette.types import Scope

    from .adapters import AuditHooks, AuditMiddleware, CallNext

logger = logging.getLogger(__name__)


@dataclass
class RequestInfo:
    """What the engine needs to know about one inbound request."""

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    client_host: str | None = None
    request_size: int = 0

    @classmethod
    def from_scope(cls, scope: Scope) -> RequestInfo:
        headers = {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in scope.get("headers", [])}
        client = scope.get("client")
        return cls(
            method=scope.get("method", "GET"),
            path=scope.get("path", "/"),
            headers=headers,
            client_host=client[0] if client else None,
            request_size=_content_length(headers),
        )

    @classmethod
    def from_request(cls, request: Request) -> RequestInfo:
        return cls.from_scope(request.scope)


def _content_length(headers: Mapping[str, str]) -> int:
    try:
        return max(0, int(headers.get("content-length", "0")))
    except ValueError:
        return 0


class AuditServer:
    """One configured audit engine. Shares a session id across its requests."""

    def __init__(
        self,
        db_url: str,
        user_id_header: str = "x-user-id",
        enable_geo: bool = True,
        on_error: ErrorSink | None = None,
        geo_lookup: GeoLookup | None = None,
        delivery: DeliveryEngine | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.db_url = db_url
        self.user_id_header = user_id_header.lower()
        self.on_error = on_error
        self.session_id = new_session_id()
        self.clock = clock or Clock()
        self.delivery = delivery or DeliveryEngine(on_error=on_error)
        self.geo = ServerGeoResolver(enabled=enable_geo, lookup=geo_lookup, on_error=on_error)
        self._sink = self.delivery.http_sink(db_url)

    def build_event(
        self,
        info: RequestInfo,
        status_code: int,
        duration: int,
        response_size: int = 0,
        response_headers: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> AuditEvent | None:
        """Assemble the event for a finished request, or None if it cannot be built."""
        user_id = (
            info.headers.get(self.user_id_header)
            or (response_headers or {}).get(self.user_id_header)
            or ANONYMOUS
        )
        ip = extract_client_ip(info.headers, info.client_host)
        fields: dict[str, Any] = {
            "session_id": self.session_id,
            "user_id": user_id,
            "route": info.path,
            "duration": max(0, int(duration)),
            "geo": self.geo.resolve(ip),
            "user_agent": info.headers.get("user-agent", UNKNOWN),
            "method": info.method,
            "status_code": status_code,
            "request_size": info.request_size,
            "response_size": response_size,
        }
        fields.update(overrides)
        try:
            return AuditEvent(**fields)
        except (ValidationError, TypeError, ValueError) as exc:
            report(self.on_error, AuditError(f"Discarded malformed audit event for {info.path}: {exc}"))
            return None

    def complete(
        self,
        info: RequestInfo,
        started: float | None,
        status_code: int,
        response_size: int = 0,
        response_headers: Mapping[str, str] | None = None,
    ) -> AuditEvent | None:
        """Called by adapters at response completion. Delivery runs in the background."""
        try:
            duration = self.clock.elapsed(started) if started is not None else 0
            event = self.build_event(info, status_code, duration, response_size, response_headers)
            if event is not None:
                self.delivery.dispatch(event, [self._sink])
        except Exception as exc:
            report(self.on_error, AuditError(f"Audit capture failed for {info.path}: {exc}"))
            return None
        return event

    async def track(self, request: Request | RequestInfo, **fields: Any) -> AuditEvent | None:
        """Manually record an event for ``request`` and wait for delivery.

        Known event fields (``user_id``, ``route``, ``method``, ``status_code``,
        ``duration``, ``event``, ``metadata``...) override the defaults; any
        other keyword is folded into ``metadata``.
        """
        info = request if isinstance(request, RequestInfo) else RequestInfo.from_request(request)
        known = set(AuditEvent.model_fields) - {"session_id", "geo", "timestamp"}
        overrides = {k: v for k, v in fields.items() if k in known}
        extra = {k: v for k, v in fields.items() if k not in known}
        if extra:
            overrides["metadata"] = {**(overrides.get("metadata") or {}), **extra}
        if "duration" in overrides:
            overrides["duration"] = max(0, int(overrides["duration"]))

        event = self.build_event(
            info,
            status_code=overrides.pop("status_code", 200),
            duration=overrides.pop("duration", 0),
            **overrides,
        )
        if event is not None:
            await self.delivery.deliver(event, self._sink)
        return event

    def asgi_middleware(self, app: Any) -> AuditMiddleware:
        from .adapters import AuditMiddleware

        return AuditMiddleware(app, server=self)

    def hooks(self) -> AuditHooks:
        from .adapters import AuditHooks

        return AuditHooks(self)

    def http_middleware(self) -> CallNext:
        from .adapters import make_http_middleware

        return make_http_middleware(self)

    async def aclose(self) -> None:
        await self.delivery.aclose()
        if isinstance(self.geo.lookup, MaxMindLookup):
            self.geo.lookup.close()


def create_audit_server(
    *,
    db_url: str | None = None,
    user_id_header: str | None = None,
    enable_geo: bool | None = None,
    on_error: ErrorSink | None = None,
    geo_lookup: GeoLookup | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float | None = None,
    clock: Clock | None = None,
) -> AuditServer:
    """Build an AuditServer; unset options fall back to ``config``.

    Raises ConfigurationError when no ``db_url`` is available.
    """
    db_url = db_url or config.db_url
    if not db_url:
        raise ConfigurationError("TriostackAudit: db_url is required")

    if geo_lookup is None and config.geoip_db:
        geo_lookup = MaxMindLookup(config.geoip_db)

    delivery = DeliveryEngine(
        timeout=timeout if timeout is not None else config.delivery_timeout,
        on_error=on_error,
        transport=transport,
    )
    server = AuditServer(
        db_url,
        user_id_header=user_id_header or config.user_id_header,
        enable_geo=config.enable_geo if enable_geo is None else enable_geo,
        on_error=on_error,
        geo_lookup=geo_lookup,
        delivery=delivery,
        clock=clock,
    )
    logger.info("Audit server configured: sink=%s geo=%s", db_url, server.geo.enabled)
    return server
