"""Microphone capture for the speech recognizer.

Audio is read in fixed-size chunks of 16-bit mono PCM and packed into WAV
bytes, the format both Whisper and the HTTP endpoint accept.
"""

from typing import Iterator, Optional

import pyaudio

from trafficaz.audio import pcm_to_wav


class VoiceInput:
    """Capture microphone audio.

    Usage::
        mic = VoiceInput()
        if mic.check_access():
            wav = mic.record(duration=4)
    """

    def __init__(self, device_index: Optional[int] = None, rate: int = 16000, chunk: int = 1024):
        self.rate = rate
        self.chunk = chunk
        self.device_index = device_index
        self._pa = pyaudio.PyAudio()

    def _open_stream(self):
        return self._pa.open(
            format=pyaudio.paInt16,
            channels=1,
            rate=self.rate,
            input=True,
            input_device_index=self.device_index,
            frames_per_buffer=self.chunk,
        )

    def check_access(self) -> bool:
        """Open and close an input stream; False if the microphone is unavailable."""
        try:
            self._open_stream().close()
        except OSError:
            return False
        return True

    def chunks(self, duration: float) -> Iterator[bytes]:
        """Yield raw PCM chunks covering ``duration`` seconds."""
        stream = self._open_stream()
        try:
            for _ in range(int(self.rate / self.chunk * duration)):
                yield stream.read(self.chunk, exception_on_overflow=False)
        finally:
            stream.stop_stream()
            stream.close()

    def record(self, duration: float = 5) -> bytes:
        """Record ``duration`` seconds and return them as WAV bytes."""
        return pcm_to_wav(list(self.chunks(duration)), self.rate)

    def close(self):
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
