"""Health check endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request

from ..deps import get_store
from ..store import EventStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, store: EventStore = Depends(get_store)) -> dict:
    return {
        "status": "healthy",
        "eventsReceived": len(store),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
    }
