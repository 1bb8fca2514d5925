"""Client-side tracker: SPA navigation capture over a host browser binding."""

from .browser import BrowserEnvironment, History, Location, Navigator, Window
from .navigation import NavigationInterceptor, NavigationState
from .registry import TrackerRegistry, registry
from .tracker import AuditClient, NoopAuditClient, create_audit_client

__all__ = [
    "AuditClient",
    "BrowserEnvironment",
    "History",
    "Location",
    "NavigationInterceptor",
    "NavigationState",
    "Navigator",
    "NoopAuditClient",
    "TrackerRegistry",
    "Window",
    "create_audit_client",
    "registry",
]
