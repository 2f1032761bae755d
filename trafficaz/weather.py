"""OpenWeatherMap client with a short-lived cache and traffic-impact scoring.

Results are plain dicts. Network or API failures never propagate: the
caller gets neutral default data and the error is logged.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

log = logging.getLogger(__name__)

CACHE_TTL = 10 * 60  # seconds

IMPACT_ORDER = {"low": 1, "medium": 2, "high": 3, "very_high": 4}
DELAY_MINUTES = {"very_high": 30, "high": 20, "medium": 10, "low": 5}


def delay_minutes(level: str) -> int:
    return DELAY_MINUTES.get(level, 0)


def traffic_impact(
    condition: str,
    wind_speed: Optional[float] = None,
    visibility_km: Optional[float] = None,
    rain_chance: Optional[float] = None,
) -> Dict[str, Any]:
    """Score how much the weather is likely to slow traffic down.

    ``wind_speed`` is in m/s as reported by the API, ``rain_chance`` in
    percent. Fog forces ``high``; wind and poor visibility only lift ``low``
    to ``medium``.
    """
    level = "low"
    reasons: List[str] = []

    if condition in ("Rain", "Thunderstorm") or (rain_chance and rain_chance > 60):
        level = "high"
        reasons.append("Rain reduces visibility and road grip")

    if condition == "Thunderstorm" or (rain_chance and rain_chance > 80):
        level = "very_high"
        reasons.append("Heavy rain may cause flooding")

    if wind_speed and wind_speed > 20:
        level = "medium" if level == "low" else level
        reasons.append("Strong winds affect driving stability")

    if visibility_km is not None and visibility_km < 5:
        level = "medium" if level == "low" else level
        reasons.append("Low visibility conditions")

    if condition in ("Mist", "Fog"):
        level = "high"
        reasons.append("Fog significantly reduces visibility")

    return {"level": level, "reasons": reasons, "delay_minutes": delay_minutes(level)}


def recommendations(
    impact: Dict[str, Any],
    condition: str,
    wind_speed: Optional[float],
    visibility_km: Optional[float],
) -> List[str]:
    level = impact["level"]
    recs: List[str] = []
    if level == "very_high":
        recs += [
            "Leave 30 minutes earlier than usual",
            "Consider taking public transport",
            "Avoid flood-prone areas",
        ]
    elif level == "high":
        recs += [
            "Leave 15-20 minutes earlier",
            "Drive with extra caution",
            "Use windshield wipers and lights",
        ]
    elif level == "medium":
        recs += ["Leave 10 minutes earlier", "Maintain safe following distance"]

    if condition == "Thunderstorm":
        recs.append("Avoid driving during thunderstorms")
    if visibility_km is not None and visibility_km < 3:
        recs.append("Use fog lights and reduce speed")
    if wind_speed and wind_speed > 25:
        recs.append("Be aware of wind gusts")
    return recs


def default_weather() -> Dict[str, Any]:
    now = datetime.now()
    return {
        "temperature": 25,
        "feels_like": 27,
        "humidity": 70,
        "pressure": 1013,
        "wind_speed": 10,
        "wind_direction": 180,
        "description": "Partly cloudy",
        "icon": "02d",
        "main": "Clouds",
        "visibility": 10,
        "sunrise": now,
        "sunset": now,
        "timestamp": now,
        "traffic_impact": {"level": "low", "reasons": [], "delay_minutes": 0},
        "recommendations": [],
    }


def default_forecast() -> Dict[str, Any]:
    return {"hourly": [], "daily": [], "summary": "Weather data unavailable"}


class WeatherService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openweathermap.org/data/2.5",
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout
        self._clock = clock
        self._cache: Dict[str, tuple] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def current(self, latitude: float, longitude: float) -> Dict[str, Any]:
        key = f"current_{latitude}_{longitude}"
        cached = self._cached(key)
        if cached is not None:
            return cached
        try:
            data = await self._get("weather", latitude, longitude)
            result = self.format_current(data)
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            log.error("Error fetching current weather: %s", exc)
            return default_weather()
        self._store(key, result)
        return result

    async def forecast(self, latitude: float, longitude: float) -> Dict[str, Any]:
        key = f"forecast_{latitude}_{longitude}"
        cached = self._cached(key)
        if cached is not None:
            return cached
        try:
            data = await self._get("forecast", latitude, longitude)
            result = self.format_forecast(data)
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            log.error("Error fetching weather forecast: %s", exc)
            return default_forecast()
        self._store(key, result)
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------
    @staticmethod
    def format_current(data: Dict[str, Any]) -> Dict[str, Any]:
        weather = data["weather"][0]
        wind = data.get("wind", {})
        visibility_km = data.get("visibility", 10000) / 1000
        impact = traffic_impact(weather["main"], wind.get("speed"), visibility_km)
        return {
            "temperature": round(data["main"]["temp"]),
            "feels_like": round(data["main"]["feels_like"]),
            "humidity": data["main"]["humidity"],
            "pressure": data["main"]["pressure"],
            "wind_speed": round(wind.get("speed", 0) * 3.6),  # km/h
            "wind_direction": wind.get("deg"),
            "description": weather["description"],
            "icon": weather["icon"],
            "main": weather["main"],
            "visibility": visibility_km,
            "sunrise": datetime.fromtimestamp(data["sys"]["sunrise"]),
            "sunset": datetime.fromtimestamp(data["sys"]["sunset"]),
            "timestamp": datetime.now(),
            "traffic_impact": impact,
            "recommendations": recommendations(
                impact, weather["main"], wind.get("speed"), visibility_km
            ),
        }

    @classmethod
    def format_forecast(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        items = data["list"]
        hourly = [cls._format_hour(item) for item in items[:8]]
        return {
            "hourly": hourly,
            "daily": cls._group_by_day(items),
            "summary": cls._summary(hourly),
        }

    @staticmethod
    def _format_hour(item: Dict[str, Any]) -> Dict[str, Any]:
        weather = item["weather"][0]
        wind_speed = item.get("wind", {}).get("speed", 0)
        rain_chance = item.get("pop", 0) * 100
        return {
            "time": datetime.fromtimestamp(item["dt"]),
            "temperature": round(item["main"]["temp"]),
            "humidity": item["main"]["humidity"],
            "description": weather["description"],
            "icon": weather["icon"],
            "main": weather["main"],
            "wind_speed": round(wind_speed * 3.6),
            "rain_chance": rain_chance,
            "traffic_impact": traffic_impact(
                weather["main"], wind_speed, rain_chance=rain_chance
            ),
        }

    @staticmethod
    def _group_by_day(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        days: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
        for item in items:
            days[datetime.fromtimestamp(item["dt"]).date()].append(item)

        daily = []
        for day, entries in days.items():
            temps = [e["main"]["temp"] for e in entries]
            first = entries[0]["weather"][0]
            daily.append(
                {
                    "date": day,
                    "avg_temperature": round(sum(temps) / len(temps)),
                    "max_temperature": round(max(temps)),
                    "min_temperature": round(min(temps)),
                    "description": first["description"],
                    "icon": first["icon"],
                    "rain_chance": max(e.get("pop", 0) * 100 for e in entries),
                    "traffic_impact": traffic_impact(
                        first["main"],
                        entries[0].get("wind", {}).get("speed"),
                        rain_chance=entries[0].get("pop", 0) * 100,
                    ),
                }
            )
        return daily

    @staticmethod
    def _summary(hourly: List[Dict[str, Any]]) -> str:
        if not hourly:
            return "Weather data unavailable"
        rain_hours = sum(1 for h in hourly if h["rain_chance"] > 50)
        avg = round(sum(h["temperature"] for h in hourly) / len(hourly))
        summary = f"Today's weather: {avg}°C average"
        if rain_hours:
            summary += f", {rain_hours} hours of rain expected"
        worst = max(
            (h["traffic_impact"] for h in hourly),
            key=lambda impact: IMPACT_ORDER.get(impact["level"], 1),
        )
        if worst["level"] != "low":
            summary += f". Traffic impact: {worst['level'].replace('_', ' ')}"
        return summary

    # ------------------------------------------------------------------
    # HTTP + cache
    # ------------------------------------------------------------------
    async def _get(self, endpoint: str, latitude: float, longitude: float) -> Dict[str, Any]:
        params = {
            "lat": latitude,
            "lon": longitude,
            "appid": self.api_key or "",
            "units": "metric",
            "lang": "en",
        }
        url = f"{self.base_url}/{endpoint}"
        if self._client is not None:
            resp = await self._client.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()

    def _cached(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._cache.get(key)
        if entry and self._clock() - entry[1] < CACHE_TTL:
            return entry[0]
        return None

    def _store(self, key: str, value: Dict[str, Any]) -> None:
        self._cache[key] = (value, self._clock())
