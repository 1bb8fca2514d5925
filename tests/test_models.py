"""Tests for the audit event model and wire format."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from triostack_audit.models import AuditEvent, GeoInfo


def test_geo_sentinel_defaults():
    geo = GeoInfo.unknown()
    assert geo.ip == "unknown"
    assert geo.city == geo.region == geo.country == "unknown"
    assert geo.latitude is None
    assert geo.longitude is None


def test_defaults_fill_every_required_wire_field():
    event = AuditEvent(session_id="s-1", route="/home")
    wire = event.to_wire()
    for key in (
        "sessionId", "timestamp", "userId", "route", "duration", "ip", "city",
        "region", "country", "latitude", "longitude", "userAgent",
    ):
        assert key in wire
    assert wire["userId"] == "anonymous"
    assert wire["duration"] == 0
    assert wire["latitude"] is None


def test_optional_fields_omitted_when_unset():
    wire = AuditEvent(session_id="s-1", route="/home").to_wire()
    for key in ("method", "statusCode", "requestSize", "responseSize", "event", "metadata", "viewport"):
        assert key not in wire


def test_server_fields_use_camel_case_keys():
    event = AuditEvent(
        session_id="s-1",
        route="/api/users",
        method="GET",
        status_code=200,
        request_size=0,
        response_size=42,
        geo=GeoInfo(ip="203.0.113.5", city="Paris", region="IDF", country="FR", latitude=48.8, longitude=2.3),
    )
    wire = event.to_wire()
    assert wire["statusCode"] == 200
    assert wire["responseSize"] == 42
    assert wire["requestSize"] == 0
    assert wire["ip"] == "203.0.113.5"
    assert wire["latitude"] == 48.8
    assert "geo" not in wire


def test_populate_by_alias():
    event = AuditEvent(sessionId="s-9", userId="u-1", route="/x")
    assert event.session_id == "s-9"
    assert event.user_id == "u-1"


def test_session_id_is_immutable():
    event = AuditEvent(session_id="s-1", route="/home")
    with pytest.raises(ValidationError):
        event.session_id = "s-2"


def test_negative_duration_rejected():
    with pytest.raises(ValidationError):
        AuditEvent(session_id="s-1", route="/home", duration=-1)


def test_timestamp_is_iso8601_utc():
    event = AuditEvent(session_id="s-1", route="/home")
    assert "T" in event.timestamp
    assert event.timestamp.endswith("+00:00")
