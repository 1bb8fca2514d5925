"""Server-side request auditing for ASGI frameworks."""

from .adapters import AuditHooks, AuditMiddleware
from .engine import AuditServer, RequestInfo, create_audit_server

__all__ = ["AuditHooks", "AuditMiddleware", "AuditServer", "RequestInfo", "create_audit_server"]
