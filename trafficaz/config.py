"""Runtime configuration read from the environment.

A ``.env`` file in the working directory is loaded first (if present), then
every setting falls back to a sensible default.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_WAKE_WORD = "hey trafficaz"
DEFAULT_WEATHER_URL = "https://api.openweathermap.org/data/2.5"
DEFAULT_GEOIP_URL = "http://ip-api.com/json"
DEFAULT_TTS_MODEL = "tts_models/en/ljspeech/tacotron2-DDC"


@dataclass(frozen=True)
class Config:
    wake_word: str = DEFAULT_WAKE_WORD
    reset_delay: float = 2.0
    restart_delay: float = 2.0
    command_timeout: float = 8.0
    language: str = "en-US"
    pitch: float = 1.0
    rate: float = 0.8
    voice: Optional[str] = None
    openweather_api_key: Optional[str] = None
    openweather_base_url: str = DEFAULT_WEATHER_URL
    location: Optional[Tuple[float, float]] = None
    location_enabled: bool = True
    geoip_url: str = DEFAULT_GEOIP_URL
    simulated_latency: float = 1.5
    whisper_model: str = "tiny"
    tts_model: str = DEFAULT_TTS_MODEL


def _flag(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def _coords(value: Optional[str]) -> Optional[Tuple[float, float]]:
    if not value:
        return None
    lat, _, lon = value.partition(",")
    return float(lat), float(lon)


def load_config(env: Optional[Mapping[str, str]] = None) -> Config:
    """Build a :class:`Config` from ``env`` (defaults to ``os.environ``).

    ``load_dotenv`` only runs when reading the real process environment so
    tests can pass an explicit mapping without touching the filesystem.
    """
    if env is None:
        load_dotenv()
        env = os.environ
    return Config(
        wake_word=env.get("TRAFFICAZ_WAKE_WORD", DEFAULT_WAKE_WORD).lower(),
        reset_delay=float(env.get("TRAFFICAZ_RESET_DELAY", "2.0")),
        restart_delay=float(env.get("TRAFFICAZ_RESTART_DELAY", "2.0")),
        command_timeout=float(env.get("TRAFFICAZ_COMMAND_TIMEOUT", "8.0")),
        language=env.get("TRAFFICAZ_LANGUAGE", "en-US"),
        pitch=float(env.get("TRAFFICAZ_PITCH", "1.0")),
        rate=float(env.get("TRAFFICAZ_RATE", "0.8")),
        voice=env.get("TRAFFICAZ_VOICE") or None,
        openweather_api_key=env.get("OPENWEATHER_API_KEY") or None,
        openweather_base_url=env.get("OPENWEATHER_BASE_URL", DEFAULT_WEATHER_URL),
        location=_coords(env.get("TRAFFICAZ_LOCATION")),
        location_enabled=_flag(env.get("TRAFFICAZ_LOCATION_ENABLED", "true")),
        geoip_url=env.get("TRAFFICAZ_GEOIP_URL", DEFAULT_GEOIP_URL),
        simulated_latency=float(env.get("TRAFFICAZ_SIMULATED_LATENCY", "1.5")),
        whisper_model=env.get("WHISPER_MODEL", "tiny"),
        tts_model=env.get("TTS_MODEL", DEFAULT_TTS_MODEL),
    )
