"""Audit event ingestion and inspection endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from ..deps import get_store
from ..store import EventStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.post("/audit")
@router.post("/audit-log")
async def receive_event(
    event: dict[str, Any] = Body(...),
    store: EventStore = Depends(get_store),
) -> dict:
    """Store one POSTed audit event (server sink and client ``/audit-log``)."""
    store.add(event)
    logger.info(
        "Audit event: user=%s route=%s method=%s status=%s duration=%ss ip=%s session=%s",
        event.get("userId"),
        event.get("route"),
        event.get("method", "-"),
        event.get("statusCode", "-"),
        event.get("duration"),
        event.get("ip"),
        event.get("sessionId"),
    )
    return {"success": True, "message": "Audit event logged"}


@router.get("/audit")
async def list_events(store: EventStore = Depends(get_store)) -> dict:
    events = store.list()
    return {"totalEvents": len(events), "events": events}


@router.delete("/audit")
async def clear_events(store: EventStore = Depends(get_store)) -> dict:
    cleared = store.clear()
    logger.info("Cleared %d audit events", cleared)
    return {"success": True, "message": "All audit events cleared"}
