"""Wiring: build the dispatcher and its collaborators from a :class:`Config`."""

import asyncio
import logging
import random
from typing import Any, Optional

from trafficaz.commands import build_router
from trafficaz.config import Config
from trafficaz.dispatcher import VoiceDispatcher
from trafficaz.handlers import CommandHandlers
from trafficaz.location import LocationProvider
from trafficaz.traffic import TrafficService
from trafficaz.voice_output import VoiceSettings
from trafficaz.weather import WeatherService

log = logging.getLogger(__name__)


def build_handlers(config: Config, rng: Optional[random.Random] = None) -> CommandHandlers:
    return CommandHandlers(
        traffic=TrafficService(rng=rng, latency=config.simulated_latency),
        weather=WeatherService(config.openweather_api_key, config.openweather_base_url),
        location=LocationProvider(
            enabled=config.location_enabled,
            fixed=config.location,
            geoip_url=config.geoip_url,
        ),
    )


def build_dispatcher(
    config: Config,
    recognizer: Any,
    speaker: Any,
    handlers: Optional[CommandHandlers] = None,
) -> VoiceDispatcher:
    return VoiceDispatcher(
        build_router(handlers or build_handlers(config)),
        recognizer,
        speaker,
        wake_word=config.wake_word,
        settings=VoiceSettings(
            language=config.language,
            pitch=config.pitch,
            rate=config.rate,
            voice=config.voice,
        ),
        reset_delay=config.reset_delay,
        restart_delay=config.restart_delay,
        command_timeout=config.command_timeout,
    )


async def run_local(config: Config) -> None:
    """Run against the local microphone and speaker until cancelled."""
    from trafficaz.stt_pipeline import SpeechRecognizer
    from trafficaz.voice_output import VoiceOutput

    dispatcher: Optional[VoiceDispatcher] = None

    # Callbacks resolve ``dispatcher`` lazily; it is built just below.
    recognizer = SpeechRecognizer(
        on_transcript=lambda text, final: dispatcher.submit_transcript(text, final),
        on_error=lambda exc: dispatcher.submit_error(exc),
        model_name=config.whisper_model,
        language=config.language.split("-")[0],
    )
    dispatcher = build_dispatcher(config, recognizer, VoiceOutput(config.tts_model))
    if not await dispatcher.start():
        await dispatcher.close()
        return
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await dispatcher.close()
