"""The TrafficAZ command table.

Order matters: the router tries entries top to bottom, so broader phrases
("alerts", "map", "weather") shadow narrower ones registered after them.
"""

from enum import Enum
from typing import List, Tuple

from trafficaz.router import CommandRouter


class Intent(str, Enum):
    TRAFFIC_SITUATION = "traffic_situation"
    REPORT_TRAFFIC = "report_traffic"
    CHECK_ALERTS = "check_alerts"
    OPEN_MAP = "open_map"
    ROUTE_TRAFFIC = "route_traffic"
    WEATHER_INFO = "weather_info"
    WEATHER_TRAFFIC = "weather_traffic"
    WEATHER_FORECAST = "weather_forecast"
    EMERGENCY = "emergency"


COMMAND_TABLE: List[Tuple[Intent, List[str]]] = [
    (Intent.TRAFFIC_SITUATION, ["traffic situation", "traffic condition", "how is traffic"]),
    (Intent.REPORT_TRAFFIC, ["report traffic", "traffic report", "report congestion"]),
    (Intent.CHECK_ALERTS, ["check alerts", "alerts", "notifications", "traffic alerts"]),
    (Intent.OPEN_MAP, ["open map", "show map", "navigation", "map"]),
    (Intent.ROUTE_TRAFFIC, ["route traffic", "my route", "commute traffic"]),
    (Intent.WEATHER_INFO, ["weather", "weather condition", "temperature", "how is the weather"]),
    (Intent.WEATHER_TRAFFIC, ["weather affecting traffic", "weather impact", "traffic weather"]),
    (Intent.WEATHER_FORECAST, ["weather forecast", "weather prediction", "will it rain"]),
    (Intent.EMERGENCY, ["emergency", "accident", "road blocked"]),
]

DESTINATIONS: List[Tuple[Tuple[str, ...], str]] = [
    (("melen",), "Melen"),
    (("yaounde", "yaoundé"), "Yaoundé"),
    (("school", "university"), "University"),
    (("work", "office"), "Work"),
    (("home",), "Home"),
    (("market",), "Market"),
    (("airport",), "Airport"),
    (("hospital",), "Hospital"),
]
DEFAULT_DESTINATION = "your destination"


def extract_destination(transcript: str) -> str:
    lowered = transcript.lower()
    for keywords, label in DESTINATIONS:
        if any(k in lowered for k in keywords):
            return label
    return DEFAULT_DESTINATION


def build_router(handlers) -> CommandRouter:
    """Register every intent in :data:`COMMAND_TABLE` against ``handlers``.

    ``handlers`` must expose one coroutine method per intent, named after
    the intent value (see :class:`trafficaz.handlers.CommandHandlers`).
    """
    router = CommandRouter()
    for intent, patterns in COMMAND_TABLE:
        router.register(intent.value, patterns, getattr(handlers, intent.value))
    return router
