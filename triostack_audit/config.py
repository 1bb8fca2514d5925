"""Environment-based configuration for the audit engine and collector."""

from __future__ import annotations

import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class AuditConfig:
    """Audit configuration loaded from environment variables.

    Explicit arguments passed to the factories always win; these values
    only fill in what the caller left out.
    """

    def __init__(self) -> None:
        # Server engine
        self.db_url = os.environ.get("TRIOSTACK_AUDIT_DB_URL", "")
        self.user_id_header = os.environ.get("TRIOSTACK_AUDIT_USER_ID_HEADER", "x-user-id").lower()
        self.enable_geo = _env_flag("TRIOSTACK_AUDIT_ENABLE_GEO", True)
        self.geoip_db = os.environ.get("TRIOSTACK_AUDIT_GEOIP_DB") or None
        self.delivery_timeout = float(os.environ.get("TRIOSTACK_AUDIT_TIMEOUT", "10"))

        # Collector
        self.collector_host = os.environ.get("TRIOSTACK_COLLECTOR_HOST", "127.0.0.1")
        self.collector_port = int(os.environ.get("TRIOSTACK_COLLECTOR_PORT", "3002"))
        self.collector_max_events = int(os.environ.get("TRIOSTACK_COLLECTOR_MAX_EVENTS", "1000"))
        self.collector_log = os.environ.get("TRIOSTACK_COLLECTOR_LOG") or None


# Singleton
config = AuditConfig()
