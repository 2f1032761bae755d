"""Coqui TTS wrapper for spoken feedback.

Provides an async ``speak`` method that synthesises text with the current
:class:`VoiceSettings` and plays it on the default output device through
``sounddevice``. The heavy imports happen when a :class:`VoiceOutput` is
created, so the settings type can be used without audio libraries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Optional

import numpy as np

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceSettings:
    language: str = "en-US"
    pitch: float = 1.0
    rate: float = 0.8
    voice: Optional[str] = None

    def update(self, **changes: Any) -> "VoiceSettings":
        """Return a copy with ``changes`` applied.

        A ``None`` value resets that field to its default. Unknown keys raise
        TypeError.
        """
        defaults = {f.name: f.default for f in fields(self)}
        return replace(
            self, **{k: defaults.get(k) if v is None else v for k, v in changes.items()}
        )

    def as_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Main wrapper
# ---------------------------------------------------------------------------
class VoiceOutput:
    """Async TTS using Coqui, played back with sounddevice."""

    def __init__(
        self,
        model_name: str = "tts_models/en/ljspeech/tacotron2-DDC",
        sample_rate: Optional[int] = None,
        warm_up: bool = True,
        engine: Any = None,
    ):
        """Create a VoiceOutput instance.

        Parameters
        ----------
        model_name: str
            Identifier of the Coqui model to load. The default is a small
            Tacotron-2 model that runs fast on CPU.
        sample_rate: Optional[int]
            Output sample rate. Defaults to the model's native rate.
        warm_up: bool
            Run one throwaway inference (the first one is slower).
        engine: Any
            An already loaded Coqui ``TTS`` object; ``model_name`` is then unused.
        """
        if engine is None:
            from TTS.api import TTS  # type: ignore

            engine = TTS(model_name=model_name, progress_bar=False, gpu=False)
        self._tts: Callable[..., Any] = engine.tts
        self._multilingual = bool(getattr(engine, "is_multi_lingual", False))
        self._multispeaker = bool(getattr(engine, "is_multi_speaker", False))
        self.sample_rate = sample_rate or int(
            getattr(engine.synthesizer, "output_sample_rate", 22050)
        )
        if warm_up:
            self._tts("warm up")

    # ---------------------------------------------------------------------
    # Public async API
    # ---------------------------------------------------------------------
    async def speak(self, text: str, settings: VoiceSettings) -> None:
        """Speak ``text`` asynchronously; returns when playback finishes."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._speak_sync, text, settings)

    # ---------------------------------------------------------------------
    # Synchronous implementation used by the executor
    # ---------------------------------------------------------------------
    def _synth_kwargs(self, settings: VoiceSettings) -> dict:
        # Coqui has no pitch control; rate maps onto speed.
        kwargs: dict = {"speed": settings.rate}
        if self._multispeaker and settings.voice:
            kwargs["speaker"] = settings.voice
        if self._multilingual:
            kwargs["language"] = settings.language.split("-")[0]
        return kwargs

    def _speak_sync(self, text: str, settings: VoiceSettings) -> None:
        wav = np.asarray(self._tts(text, **self._synth_kwargs(settings)), dtype=np.float32)
        log.debug("Speaking %d samples: %s", len(wav), text)
        self._play(wav)

    def _play(self, wav: np.ndarray) -> None:
        import sounddevice as sd

        sd.play(wav, self.sample_rate)
        sd.wait()
