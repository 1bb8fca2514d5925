"""Audit event model and its JSON wire format."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN = "unknown"
ANONYMOUS = "anonymous"


class GeoInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip: str = UNKNOWN
    city: str = UNKNOWN
    region: str = UNKNOWN
    country: str = UNKNOWN
    latitude: float | None = None
    longitude: float | None = None

    @classmethod
    def unknown(cls, ip: str = UNKNOWN) -> GeoInfo:
        return cls(ip=ip)


class AuditEvent(BaseModel):
    """One enriched record of a navigation or request transition.

    Field aliases are the wire keys; every field has a default so an
    event can always be assembled even if enrichment degraded.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    user_id: str = Field(default=ANONYMOUS, alias="userId")
    route: str
    duration: int = Field(default=0, ge=0)
    geo: GeoInfo = Field(default_factory=GeoInfo)
    user_agent: str = Field(default=UNKNOWN, alias="userAgent")

    # Client only
    language: str | None = None
    timezone: str | None = None
    screen_resolution: str | None = Field(default=None, alias="screenResolution")
    viewport: str | None = None

    # Server only
    method: str | None = None
    status_code: int | None = Field(default=None, alias="statusCode")
    request_size: int | None = Field(default=None, alias="requestSize")
    response_size: int | None = Field(default=None, alias="responseSize")

    # Manually triggered events
    event: str | None = None
    metadata: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        """Flat JSON body as POSTed to a sink. Coordinates are always present."""
        body = self.model_dump(mode="json", by_alias=True, exclude={"geo"}, exclude_none=True)
        body.update(self.geo.model_dump(mode="json"))
        return body


class DeliveryOutcome(BaseModel):
    sink: str
    ok: bool
    status_code: int | None = None
    error: str | None = None
