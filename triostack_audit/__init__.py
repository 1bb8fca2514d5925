"""Triostack audit: route-time tracking and HTTP request auditing.

Events are enriched with session, identity and location metadata and
delivered best-effort to one or more sink URLs. Audit failures never
block or crash the host application.
"""

from .client import BrowserEnvironment, TrackerRegistry, create_audit_client
from .delivery import DeliveryEngine, HttpSink, LocalSink
from .errors import (
    AuditError,
    ConfigurationError,
    DeliveryFailure,
    DuplicateInstance,
    EnrichmentFailure,
    EnvironmentMismatch,
)
from .models import AuditEvent, DeliveryOutcome, GeoInfo
from .server import AuditHooks, AuditMiddleware, AuditServer, create_audit_server

__version__ = "0.1.0"

__all__ = [
    "AuditError",
    "AuditEvent",
    "AuditHooks",
    "AuditMiddleware",
    "AuditServer",
    "BrowserEnvironment",
    "ConfigurationError",
    "DeliveryEngine",
    "DeliveryFailure",
    "DeliveryOutcome",
    "DuplicateInstance",
    "EnrichmentFailure",
    "EnvironmentMismatch",
    "GeoInfo",
    "HttpSink",
    "LocalSink",
    "TrackerRegistry",
    "create_audit_client",
    "create_audit_server",
]
