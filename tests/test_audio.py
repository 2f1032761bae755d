"""Tests for WAV decoding and the remote speech log."""

import asyncio
import io
import wave

import numpy as np
import pytest

from trafficaz.audio import pcm_to_wav, wav_to_array
from trafficaz.remote import SpeechLog
from trafficaz.voice_output import VoiceSettings


def _wav(samples, sampwidth=2, channels=1, rate=16000):
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sampwidth)
        wf.setframerate(rate)
        wf.writeframes(samples)
    return buf.getvalue()


def test_wav_to_array_scales_to_unit_range():
    pcm = np.array([0, 16384, -32768], dtype=np.int16).tobytes()
    samples = wav_to_array(_wav(pcm))
    assert samples.dtype == np.float32
    assert samples.tolist() == [0.0, 0.5, -1.0]


def test_pcm_to_wav_packs_chunks():
    wav = pcm_to_wav([b"\x01\x00", b"\x02\x00\x03\x00"], rate=16000)
    with wave.open(io.BytesIO(wav), "rb") as wf:
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1
        assert wf.getnframes() == 3
    assert (wav_to_array(wav) * 32768).tolist() == [1.0, 2.0, 3.0]


def test_wav_to_array_rejects_8_bit():
    with pytest.raises(ValueError):
        wav_to_array(_wav(b"\x80\x80", sampwidth=1))


def test_wav_to_array_rejects_stereo():
    stereo = np.zeros(2 * 16000, dtype=np.int16).tobytes()
    with pytest.raises(ValueError, match="mono"):
        wav_to_array(_wav(stereo, channels=2))


def test_wav_to_array_rejects_other_sample_rates():
    one_second = np.zeros(44100, dtype=np.int16).tobytes()
    with pytest.raises(ValueError, match="16000 Hz"):
        wav_to_array(_wav(one_second, rate=44100))


def test_speech_log_since_mark():
    log = SpeechLog(maxlen=3)

    async def say(*lines):
        for line in lines:
            await log.speak(line, VoiceSettings())

    asyncio.run(say("one"))
    mark = log.mark()
    asyncio.run(say("two", "three"))
    assert log.since(mark) == ["two", "three"]
    assert log.since(log.mark()) == []
    asyncio.run(say("four", "five"))
    assert log.lines == ["three", "four", "five"]
    assert log.since(0) == ["three", "four", "five"]


def test_voice_settings_update_returns_copy():
    settings = VoiceSettings()
    faster = settings.update(rate=1.0, voice=None)
    assert settings.rate == 0.8
    assert faster.rate == 1.0
    with pytest.raises(TypeError):
        settings.update(volume=2)
