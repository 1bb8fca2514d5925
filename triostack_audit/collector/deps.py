"""FastAPI dependencies for the collector."""

from __future__ import annotations

from fastapi import Request

from .store import EventStore


async def get_store(request: Request) -> EventStore:
    """Resolve the EventStore attached to the running app."""
    return request.app.state.store
