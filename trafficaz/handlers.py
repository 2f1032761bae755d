"""Per-intent command handlers.

Each handler acknowledges the request, gathers whatever it needs (location
fix, traffic or weather data) and speaks a summary through ``say``. Expected
failures (no location permission, data source down) become a spoken
apology; anything else propagates to the dispatcher.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from trafficaz.commands import extract_destination
from trafficaz.errors import DataSourceError, LocationPermissionDenied
from trafficaz.location import LocationProvider
from trafficaz.router import Say
from trafficaz.traffic import TrafficService
from trafficaz.weather import WeatherService

log = logging.getLogger(__name__)

Result = Optional[Dict[str, Any]]

FORECAST_HOURS = 4
RAIN_MENTION_THRESHOLD = 30

IMPACT_MESSAGES = {
    "low": "Weather conditions are good. Traffic should be normal with minimal delays.",
    "medium": (
        "Weather is moderately affecting traffic. Expect delays of about "
        "{delay} minutes. Drive with caution."
    ),
    "high": (
        "Weather is significantly affecting traffic. Expect delays of about "
        "{delay} minutes. Consider leaving earlier."
    ),
    "very_high": (
        "Weather is severely affecting traffic. Expect delays of about "
        "{delay} minutes. Consider alternative routes or public transport."
    ),
}


def _hour_label(moment: datetime) -> str:
    return f"{moment.strftime('%I').lstrip('0')} {moment.strftime('%p')}"


class CommandHandlers:
    def __init__(
        self,
        traffic: TrafficService,
        weather: WeatherService,
        location: LocationProvider,
    ):
        self.traffic = traffic
        self.weather = weather
        self.location = location

    async def traffic_situation(self, transcript: str, say: Say) -> Result:
        destination = extract_destination(transcript)
        await say(f"Checking traffic to {destination}. Please wait.")
        try:
            fix = await self.location.current_position()
            info = await self.traffic.traffic_to(destination, fix)
        except (LocationPermissionDenied, DataSourceError) as exc:
            log.warning("Traffic query failed: %s", exc)
            await say("Sorry, I couldn't check the traffic right now. Please try again.")
            return None
        message = (
            f"Traffic to {destination} is {info['level']}. "
            f"Estimated travel time is {info['eta_minutes']} minutes."
        )
        if info["alternative"]:
            message += f" {info['alternative']}"
        await say(message)
        return info

    async def report_traffic(self, transcript: str, say: Say) -> Result:
        await say("Reporting traffic in your area. Please confirm.")
        try:
            fix = await self.location.current_position()
            info = await self.traffic.report(fix)
        except (LocationPermissionDenied, DataSourceError) as exc:
            log.warning("Traffic report failed: %s", exc)
            await say("Sorry, I couldn't report traffic right now. Please try again.")
            return None
        await say(
            f"Traffic reported successfully. {info['users_notified']} nearby users "
            "have been notified. Thank you for helping the community."
        )
        return info

    async def check_alerts(self, transcript: str, say: Say) -> Result:
        info = await self.traffic.alerts()
        count = info["count"]
        plural = "s" if count > 1 else ""
        lead = "The most recent is" if count > 1 else "It's"
        await say(
            f"You have {count} traffic alert{plural}. {lead} a {info['priority']} "
            f"priority alert about {info['subject']}."
        )
        return info

    async def open_map(self, transcript: str, say: Say) -> Result:
        await say("Opening the traffic map for you.")
        return {"action": "navigate", "screen": "Map"}

    async def route_traffic(self, transcript: str, say: Say) -> Result:
        await say("Checking traffic on your scheduled routes.")
        info = await self.traffic.route_check()
        await say(
            f"Your {info['route']} route has {info['level']} traffic. "
            f"Estimated travel time is {info['eta_minutes']} minutes."
        )
        return info

    async def weather_info(self, transcript: str, say: Say) -> Result:
        await say("Checking current weather conditions. Please wait.")
        try:
            fix = await self.location.current_position()
        except (LocationPermissionDenied, DataSourceError) as exc:
            log.warning("Weather query failed: %s", exc)
            await say("Sorry, I couldn't check the weather right now. Please try again.")
            return None
        current = await self.weather.current(fix.latitude, fix.longitude)
        await say(
            f"Current weather: {current['description']}. Temperature is "
            f"{current['temperature']} degrees Celsius. Humidity is "
            f"{current['humidity']} percent."
        )
        return current

    async def weather_traffic(self, transcript: str, say: Say) -> Result:
        await say("Checking how weather is affecting traffic. Please wait.")
        try:
            fix = await self.location.current_position()
        except (LocationPermissionDenied, DataSourceError) as exc:
            log.warning("Weather impact query failed: %s", exc)
            await say(
                "Sorry, I couldn't check weather traffic impact right now. Please try again."
            )
            return None
        impact = (await self.weather.current(fix.latitude, fix.longitude))["traffic_impact"]
        template = IMPACT_MESSAGES.get(impact["level"], IMPACT_MESSAGES["very_high"])
        await say(template.format(delay=impact["delay_minutes"]))
        return impact

    async def weather_forecast(self, transcript: str, say: Say) -> Result:
        await say("Checking weather forecast. Please wait.")
        try:
            fix = await self.location.current_position()
        except (LocationPermissionDenied, DataSourceError) as exc:
            log.warning("Forecast query failed: %s", exc)
            await say(
                "Sorry, I couldn't check the weather forecast right now. Please try again."
            )
            return None
        forecast = await self.weather.forecast(fix.latitude, fix.longitude)
        hours = forecast["hourly"][:FORECAST_HOURS]
        if not hours:
            await say("Weather forecast data is currently unavailable.")
            return forecast

        parts = []
        for hour in hours:
            part = f"{_hour_label(hour['time'])}: {hour['description']}, {hour['temperature']} degrees"
            if hour["rain_chance"] > RAIN_MENTION_THRESHOLD:
                part += f", {round(hour['rain_chance'])}% chance of rain"
            parts.append(part + ".")
        await say("Weather forecast for the next few hours: " + " ".join(parts))
        return forecast

    async def emergency(self, transcript: str, say: Say) -> Result:
        await say(
            "Emergency traffic situation detected. Sending alert to all nearby "
            "users and emergency services."
        )
        info = await self.traffic.emergency_alert()
        await say(
            "Emergency alert sent. Please proceed with caution and follow traffic instructions."
        )
        return info
