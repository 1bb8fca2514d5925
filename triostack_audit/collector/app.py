"""FastAPI application receiving audit events."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..config import config
from .routers.events import router as events_router
from .routers.health import router as health_router
from .store import EventStore

logger = logging.getLogger(__name__)


def create_app(store: EventStore | None = None) -> FastAPI:
    """Build a collector app; ``store`` defaults to one sized from ``config``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Audit collector listening on %s:%d", config.collector_host, config.collector_port)
        if app.state.store.log_path:
            logger.info("Persisting events to %s", app.state.store.log_path)
        yield
        logger.info("Audit collector stopped (%d events held)", len(app.state.store))

    app = FastAPI(
        title="Triostack Audit Collector",
        description="Receives audit events POSTed by trackers and audit middleware",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store or EventStore(
        max_events=config.collector_max_events,
        log_path=config.collector_log,
    )
    app.state.started_at = time.monotonic()

    app.include_router(health_router)
    app.include_router(events_router)
    return app
