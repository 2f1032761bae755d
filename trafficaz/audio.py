"""WAV helpers shared by the microphone pipeline and the HTTP endpoint."""

import io
import wave
from typing import Iterable

import numpy as np

SAMPLE_WIDTH = 2  # 16-bit PCM
SAMPLE_RATE = 16000  # what Whisper expects when handed an array


def pcm_to_wav(chunks: Iterable[bytes], rate: int, channels: int = 1) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(rate)
        wf.writeframes(b"".join(chunks))
    return buf.getvalue()


def wav_to_array(wav_bytes: bytes) -> np.ndarray:
    """Decode 16 kHz, 16-bit mono WAV bytes into the float32 array Whisper expects.

    Whisper does not resample arrays, so any other layout is rejected with
    ``ValueError`` rather than transcribed at the wrong speed.
    """
    with wave.open(io.BytesIO(wav_bytes), "rb") as wf:
        if wf.getsampwidth() != SAMPLE_WIDTH:
            raise ValueError("only 16-bit PCM WAV is supported")
        if wf.getnchannels() != 1:
            raise ValueError(f"expected mono audio, got {wf.getnchannels()} channels")
        if wf.getframerate() != SAMPLE_RATE:
            raise ValueError(f"expected {SAMPLE_RATE} Hz audio, got {wf.getframerate()} Hz")
        frames = wf.readframes(wf.getnframes())
    return np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
