"""Speech-to-text pipeline using the microphone and Whisper.

* A background thread records short snippets with :class:`VoiceInput`.
* Each snippet is transcribed with ``whisper.load_model('tiny')``.
* Non-empty text is handed to ``on_transcript``; failures go to ``on_error``.

Wake-word spotting is done on the transcripts by the dispatcher, so this
class only has to turn sound into text.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional

from trafficaz.audio import SAMPLE_RATE, wav_to_array
from trafficaz.errors import RecognitionError

log = logging.getLogger(__name__)


class SpeechRecognizer:
    """Continuously transcribe microphone audio.

    Example usage::
        recognizer = SpeechRecognizer(
            on_transcript=dispatcher.submit_transcript,
            on_error=dispatcher.submit_error,
        )
        recognizer.start()
        # ... later
        recognizer.close()
    """

    def __init__(
        self,
        on_transcript: Callable[[str, bool], None],
        on_error: Callable[[Exception], None],
        model_name: str = "tiny",
        snippet_seconds: float = 4,
        language: str = "en",
        model: Any = None,
        audio: Any = None,
    ):
        self.on_transcript = on_transcript
        self.on_error = on_error
        self.snippet_seconds = snippet_seconds
        self.language = language
        self._generation = 0
        self._running = False
        self._threads: List[threading.Thread] = []
        self._audio = audio
        if model is None:
            import whisper

            # Load the Whisper model once
            model = whisper.load_model(model_name)
        self._model = model

    def _input(self):
        if self._audio is None:
            from trafficaz.voice_input import VoiceInput

            self._audio = VoiceInput(rate=SAMPLE_RATE, chunk=1024)
        return self._audio

    async def request_permission(self) -> bool:
        return await asyncio.to_thread(self._input().check_access)

    def _listen_loop(self, generation: int):
        audio = self._input()
        while self._running and generation == self._generation:
            try:
                samples = wav_to_array(audio.record(self.snippet_seconds))
                result = self._model.transcribe(samples, fp16=False, language=self.language)
                text = result.get("text", "").strip()
            except Exception as exc:
                log.error("Recognition failed: %s", exc)
                if generation == self._generation:
                    self.on_error(RecognitionError(str(exc)))
                return
            # Drop results from a loop that was stopped mid-snippet
            if text and generation == self._generation:
                self.on_transcript(text, True)

    def start(self):
        if self._running:
            return
        self._running = True
        self._generation += 1
        self._threads = [t for t in self._threads if t.is_alive()]
        thread = threading.Thread(
            target=self._listen_loop, args=(self._generation,), daemon=True
        )
        self._threads.append(thread)
        thread.start()

    def stop(self):
        # Non-blocking: the loop notices on its next snippet boundary.
        self._running = False
        self._generation += 1

    def close(self, timeout: Optional[float] = None):
        """Stop, wait for capture threads to finish, then release the microphone."""
        self.stop()
        if timeout is None:
            timeout = self.snippet_seconds + 1
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join(timeout)
        alive = [t for t in self._threads if t.is_alive()]
        if alive:
            log.warning("Capture thread still running after %.1fs; leaving audio open", timeout)
            return
        self._threads = []
        if self._audio is not None:
            self._audio.close()
            self._audio = None
