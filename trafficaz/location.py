"""Location fixes for command handlers.

A fix is requested fresh for every handler call. When the device has a
configured position it is used directly; otherwise the public IP is
geolocated, which is coarse but needs no extra hardware.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from trafficaz.errors import DataSourceError, LocationPermissionDenied

log = logging.getLogger(__name__)

# Reported accuracy (metres) for each source.
CONFIGURED_ACCURACY = 10.0
GEOIP_ACCURACY = 5000.0


@dataclass(frozen=True)
class LocationFix:
    latitude: float
    longitude: float
    accuracy: float
    timestamp: float


class LocationProvider:
    def __init__(
        self,
        *,
        enabled: bool = True,
        fixed: Optional[Tuple[float, float]] = None,
        geoip_url: str = "http://ip-api.com/json",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ):
        self.enabled = enabled
        self.fixed = fixed
        self.geoip_url = geoip_url
        self._client = client
        self._timeout = timeout

    async def current_position(self) -> LocationFix:
        """Return the current position or raise ``LocationPermissionDenied``."""
        if not self.enabled:
            raise LocationPermissionDenied("Location permission denied")
        if self.fixed is not None:
            lat, lon = self.fixed
            return LocationFix(lat, lon, CONFIGURED_ACCURACY, time.time())
        return await self._geolocate()

    async def _geolocate(self) -> LocationFix:
        try:
            if self._client is not None:
                resp = await self._client.get(self.geoip_url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(self.geoip_url)
            resp.raise_for_status()
            data = resp.json()
            return LocationFix(
                float(data["lat"]), float(data["lon"]), GEOIP_ACCURACY, time.time()
            )
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            log.warning("IP geolocation failed: %s", exc)
            raise DataSourceError(f"location lookup failed: {exc}") from exc
