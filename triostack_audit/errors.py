"""Error taxonomy and the default error sink.

Only ConfigurationError is ever raised out of a public operation. Every
other failure is handed to the caller-supplied ``on_error`` callback.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ErrorSink = Callable[[Exception], None]


class AuditError(Exception):
    """Base class for all audit engine errors."""


class ConfigurationError(AuditError, ValueError):
    """A required option (sink URL) is missing. Raised at construction."""


class EnrichmentFailure(AuditError):
    """Geo resolution failed; the event carries sentinel values instead."""


class DeliveryFailure(AuditError):
    """A sink rejected the event, timed out, or was unreachable."""

    def __init__(self, message: str, sink: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.sink = sink
        self.status_code = status_code


class EnvironmentMismatch(AuditError):
    """Tracker constructed without a browser environment; it degrades to a no-op."""


class DuplicateInstance(AuditError):
    """A tracker is already active for this environment; the existing one is reused."""


_WARNINGS = (EnvironmentMismatch, DuplicateInstance)


def default_error_sink(err: Exception) -> None:
    """Log the error. Warnings go out at WARNING, failures at ERROR."""
    if isinstance(err, _WARNINGS):
        logger.warning("TriostackAudit: %s", err)
    else:
        logger.error("TriostackAudit Error: %s", err)


def report(on_error: ErrorSink | None, err: Exception) -> None:
    """Hand ``err`` to the error sink. A failing sink is logged, never raised."""
    sink = on_error or default_error_sink
    try:
        sink(err)
    except Exception as exc:
        logger.error("Error sink raised while reporting %r: %s", err, exc)
