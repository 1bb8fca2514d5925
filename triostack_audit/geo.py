"""Geo resolution: client IP extraction and the location fallback chain.

Every resolver here returns a complete GeoInfo and never raises. The worst
case is the all-"unknown" sentinel, with the failure sent to the error sink.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Protocol

import geoip2.database
import geoip2.errors

from .errors import EnrichmentFailure, ErrorSink, report
from .models.event import UNKNOWN, GeoInfo

logger = logging.getLogger(__name__)

LOCAL_IP = "local"


def extract_client_ip(headers: Mapping[str, str], remote_addr: str | None = None) -> str:
    """Forwarded-for first hop -> real-ip -> transport address -> "unknown"."""
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if remote_addr:
        return remote_addr
    return UNKNOWN


class GeoLookup(Protocol):
    def lookup(self, ip: str) -> GeoInfo | None: ...


class MaxMindLookup:
    """Offline lookup against a MaxMind GeoLite2/GeoIP2 City database.

    The database is opened on first use. If opening fails, the error is
    raised once and every later lookup returns None without retrying.
    """

    def __init__(self, database_path: str) -> None:
        self.database_path = database_path
        self._reader: geoip2.database.Reader | None = None
        self._unavailable = False

    def lookup(self, ip: str) -> GeoInfo | None:
        if self._unavailable:
            return None
        if self._reader is None:
            try:
                self._reader = geoip2.database.Reader(self.database_path)
            except Exception:
                self._unavailable = True
                logger.warning("GeoIP database %s unavailable, geo lookups disabled", self.database_path)
                raise
            logger.info("Opened GeoIP database %s", self.database_path)
        try:
            record = self._reader.city(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError):
            return None

        region = record.subdivisions.most_specific.iso_code or record.subdivisions.most_specific.name
        return GeoInfo(
            ip=ip,
            city=record.city.name or UNKNOWN,
            region=region or UNKNOWN,
            country=record.country.iso_code or UNKNOWN,
            latitude=record.location.latitude,
            longitude=record.location.longitude,
        )

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None


class ServerGeoResolver:
    """Synchronous, offline resolution for the server engine."""

    def __init__(
        self,
        enabled: bool = True,
        lookup: GeoLookup | None = None,
        on_error: ErrorSink | None = None,
    ) -> None:
        self.enabled = enabled
        self.lookup = lookup
        self.on_error = on_error

    def resolve(self, ip: str) -> GeoInfo:
        if not self.enabled:
            return GeoInfo.unknown()
        if self.lookup is None or ip == UNKNOWN:
            return GeoInfo.unknown(ip)
        try:
            info = self.lookup.lookup(ip)
        except Exception as exc:
            report(self.on_error, EnrichmentFailure(f"Geo lookup failed for {ip}: {exc}"))
            return GeoInfo.unknown(ip)
        return info if info is not None else GeoInfo.unknown(ip)


# Host geolocation provider: resolves to (latitude, longitude), raises on denial.
GeolocationProvider = Callable[[], Awaitable[Any]]


class ClientGeoResolver:
    """Bounded resolution chain for the client tracker.

    (a) the host geolocation provider, raced against ``timeout``;
    (b) the local sentinel. No external geolocation services are queried.
    """

    def __init__(
        self,
        enabled: bool = True,
        geolocation: GeolocationProvider | None = None,
        timeout: float = 5.0,
        on_error: ErrorSink | None = None,
    ) -> None:
        self.enabled = enabled
        self.geolocation = geolocation
        self.timeout = timeout
        self.on_error = on_error

    async def resolve(self) -> GeoInfo:
        if not self.enabled or self.geolocation is None:
            return GeoInfo.unknown(LOCAL_IP)
        try:
            position = await asyncio.wait_for(self.geolocation(), timeout=self.timeout)
            latitude, longitude = _coordinates(position)
        except asyncio.TimeoutError:
            report(self.on_error, EnrichmentFailure(f"Geolocation timed out after {self.timeout}s"))
            return GeoInfo.unknown(LOCAL_IP)
        except Exception as exc:
            report(self.on_error, EnrichmentFailure(f"Geolocation unavailable: {exc}"))
            return GeoInfo.unknown(LOCAL_IP)
        return GeoInfo(ip=LOCAL_IP, latitude=latitude, longitude=longitude)


def _coordinates(position: Any) -> tuple[float, float]:
    """Accept a (lat, lon) pair or an object with latitude/longitude."""
    if isinstance(position, (tuple, list)):
        latitude, longitude = position
    else:
        latitude, longitude = position.latitude, position.longitude
    return float(latitude), float(longitude)
