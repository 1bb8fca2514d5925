"""Framework adapters around AuditServer.

Three shapes of the same interception, all feeding ``AuditServer.complete``:

* ``AuditMiddleware``: pure ASGI wrapper around the app (Express-style).
* ``AuditHooks``: on_request / on_response hook pair (Fastify-style).
* ``make_http_middleware``: ``async (request, call_next)`` for
  ``app.middleware("http")`` (Koa-style downstream await).

A handler exception yields one event carrying the status the client gets:
the app's 500/Exception handler decides it, or 500 when there is none. The
exception is re-raised untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Mapping

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..models.event import AuditEvent
from .engine import RequestInfo

if TYPE_CHECKING:
    from .engine import AuditServer

logger = logging.getLogger(__name__)

STATE_KEY = "audit_started_at"

CallNext = Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]


def _response_size(headers: Mapping[str, str]) -> int | None:
    try:
        return int(headers.get("content-length", ""))
    except ValueError:
        return None


async def resolve_error_status(scope: Scope, exc: Exception) -> int:
    """Status the client receives for an unhandled ``exc``.

    Starlette hands such exceptions to the app's 500/Exception handler in
    ServerErrorMiddleware, outside every user middleware; ask that handler.
    """
    handlers = getattr(scope.get("app"), "exception_handlers", None) or {}
    handler = handlers.get(500) or handlers.get(Exception)
    if handler is None:
        return 500
    request = Request(scope)
    try:
        if asyncio.iscoroutinefunction(handler):
            response = await handler(request, exc)
        else:
            response = await run_in_threadpool(handler, request, exc)
        return int(response.status_code)
    except Exception as handler_exc:
        logger.warning("Exception handler failed while resolving audit status: %s", handler_exc)
        return 500


def _when_sent(response: Response, finish: Callable[[int], AuditEvent | None]) -> AuditEvent | None:
    """Call ``finish`` with the response body size once it is known.

    Sized responses finish immediately. Streamed bodies are counted while
    they are sent and finish when the stream ends; None is returned then.
    """
    size = _response_size(response.headers)
    if size is not None:
        return finish(size)
    iterator = getattr(response, "body_iterator", None)
    if iterator is None:
        return finish(len(getattr(response, "body", b"") or b""))

    async def counted() -> AsyncIterator[Any]:
        sent = 0
        try:
            async for chunk in iterator:
                sent += len(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
                yield chunk
        finally:
            finish(sent)

    response.body_iterator = counted()
    return None


class AuditMiddleware:
    """ASGI middleware: ``app.add_middleware(AuditMiddleware, server=audit_server)``."""

    def __init__(self, app: ASGIApp, server: AuditServer) -> None:
        self.app = app
        self.server = server

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        info = RequestInfo.from_scope(scope)
        started = self.server.clock.start()
        status_code = 500
        response_started = False
        body_bytes = 0
        response_headers: dict[str, str] = {}

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, response_started, body_bytes
            if message["type"] == "http.response.start":
                response_started = True
                status_code = message["status"]
                for key, value in message.get("headers", []):
                    response_headers[key.decode("latin-1").lower()] = value.decode("latin-1")
            elif message["type"] == "http.response.body":
                body_bytes += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if not response_started:
                status_code = await resolve_error_status(scope, exc)
            raise
        finally:
            size = _response_size(response_headers)
            self.server.complete(
                info,
                started,
                status_code,
                size if size is not None else body_bytes,
                response_headers,
            )


class AuditHooks:
    """Request/response hook pair. The start instant lives on ``request.state``."""

    def __init__(self, server: AuditServer) -> None:
        self.server = server

    async def on_request(self, request: Request) -> None:
        setattr(request.state, STATE_KEY, self.server.clock.start())

    async def on_response(self, request: Request, response: Response) -> AuditEvent | None:
        """Record ``response``. Streamed bodies are recorded once fully sent."""
        # Requests that never passed on_request are still recorded, with duration 0
        started = getattr(request.state, STATE_KEY, None)
        info = RequestInfo.from_request(request)
        return _when_sent(
            response,
            lambda size: self.server.complete(info, started, response.status_code, size, response.headers),
        )

    async def on_error(self, request: Request, exc: Exception) -> AuditEvent | None:
        status_code = await resolve_error_status(request.scope, exc)
        return await self.on_response(request, Response(status_code=status_code))

    def install(self, app: FastAPI) -> None:
        """Run the hooks around every request of ``app``."""

        @app.middleware("http")
        async def audit_hooks(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
            await self.on_request(request)
            try:
                response = await call_next(request)
            except Exception as exc:
                await self.on_error(request, exc)
                raise
            await self.on_response(request, response)
            return response


def make_http_middleware(server: AuditServer) -> CallNext:
    """Downstream-await middleware: ``app.middleware("http")(server.http_middleware())``."""

    async def audit_http_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        info = RequestInfo.from_request(request)
        started = server.clock.start()
        try:
            response = await call_next(request)
        except Exception as exc:
            server.complete(info, started, await resolve_error_status(request.scope, exc))
            raise
        _when_sent(
            response,
            lambda size: server.complete(info, started, response.status_code, size, response.headers),
        )
        return response

    return audit_http_middleware
