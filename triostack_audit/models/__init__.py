"""Audit event data models."""

from .event import ANONYMOUS, UNKNOWN, AuditEvent, DeliveryOutcome, GeoInfo

__all__ = ["ANONYMOUS", "UNKNOWN", "AuditEvent", "DeliveryOutcome", "GeoInfo"]
