"""Shared fakes for the dispatcher tests: no microphone, no TTS engine."""

import asyncio
import random

import pytest

from trafficaz.commands import build_router
from trafficaz.dispatcher import VoiceDispatcher
from trafficaz.handlers import CommandHandlers
from trafficaz.location import LocationProvider
from trafficaz.traffic import TrafficService
from trafficaz.weather import WeatherService

YAOUNDE = (3.848033, 11.502075)


class FakeRecognizer:
    def __init__(self, permission=True):
        self.permission = permission
        self.starts = 0
        self.stops = 0
        self.listening = False

    async def request_permission(self):
        return self.permission

    def start(self):
        self.starts += 1
        self.listening = True

    def stop(self):
        self.stops += 1
        self.listening = False


class RecordingSpeaker:
    def __init__(self):
        self.spoken = []
        self.settings = []

    async def speak(self, text, settings):
        self.spoken.append(text)
        self.settings.append(settings)


class StubWeather(WeatherService):
    """WeatherService that never touches the network."""

    def __init__(self, current=None, forecast=None):
        super().__init__()
        self._current_data = current
        self._forecast_data = forecast

    async def current(self, latitude, longitude):
        return self._current_data

    async def forecast(self, latitude, longitude):
        return self._forecast_data


def make_handlers(location=None, weather=None, seed=7):
    return CommandHandlers(
        traffic=TrafficService(rng=random.Random(seed), latency=0),
        weather=weather or StubWeather(),
        location=location or LocationProvider(fixed=YAOUNDE),
    )


def make_dispatcher(router=None, permission=True, **kwargs):
    recognizer = FakeRecognizer(permission=permission)
    speaker = RecordingSpeaker()
    kwargs.setdefault("reset_delay", 0.05)
    kwargs.setdefault("restart_delay", 0.05)
    kwargs.setdefault("command_timeout", 30)
    dispatcher = VoiceDispatcher(
        router or build_router(make_handlers()), recognizer, speaker, **kwargs
    )
    events = []
    dispatcher.add_listener(events.append)
    return dispatcher, recognizer, speaker, events


async def settle(dispatcher, delay=0.0):
    """Let timers fire (``delay`` seconds) and drain the event queue."""
    await asyncio.sleep(delay)
    await dispatcher.join()


@pytest.fixture
def handlers():
    return make_handlers()
