"""Traffic data source.

Stands in for the TrafficAZ backend (congestion analysis, reports, alerts,
route checks). Every call waits ``latency`` seconds like a network round
trip and returns randomised figures; pass a seeded ``random.Random`` for
repeatable results.
"""

import asyncio
import logging
import random
from typing import Any, Dict, Optional

from trafficaz.location import LocationFix

log = logging.getLogger(__name__)

ALTERNATIVE_ROUTE = "Consider taking Avenue Kennedy instead."
SCHEDULED_ROUTES = ("Home to Work", "Work to Home")


class TrafficService:
    def __init__(self, rng: Optional[random.Random] = None, latency: float = 1.5):
        self._rng = rng or random.Random()
        self.latency = latency

    async def _round_trip(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)

    def _level(self) -> str:
        return "moderate" if self._rng.random() > 0.5 else "heavy"

    async def traffic_to(self, destination: str, fix: LocationFix) -> Dict[str, Any]:
        log.debug("Traffic lookup to %s from %.5f,%.5f", destination, fix.latitude, fix.longitude)
        await self._round_trip()
        level = self._level()
        eta = self._rng.randint(10, 39)
        alternative = ALTERNATIVE_ROUTE if self._rng.random() > 0.5 else ""
        return {
            "destination": destination,
            "level": level,
            "eta_minutes": eta,
            "alternative": alternative,
        }

    async def report(self, fix: LocationFix) -> Dict[str, Any]:
        log.debug("Reporting traffic at %.5f,%.5f", fix.latitude, fix.longitude)
        await self._round_trip()
        return {"users_notified": self._rng.randint(10, 59)}

    async def alerts(self) -> Dict[str, Any]:
        count = self._rng.randint(1, 5)
        priority = "high" if self._rng.random() > 0.5 else "medium"
        return {
            "count": count,
            "priority": priority,
            "subject": "heavy traffic on Main Street",
        }

    async def route_check(self) -> Dict[str, Any]:
        await self._round_trip()
        return {
            "route": self._rng.choice(SCHEDULED_ROUTES),
            "level": self._level(),
            "eta_minutes": self._rng.randint(10, 29),
        }

    async def emergency_alert(self) -> Dict[str, Any]:
        await self._round_trip()
        return {"sent": True}
