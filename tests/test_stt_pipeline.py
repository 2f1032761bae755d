"""Tests for the microphone + Whisper recognizer, with fake audio and model."""

import asyncio
import threading
import time

from trafficaz.audio import pcm_to_wav
from trafficaz.errors import RecognitionError
from trafficaz.stt_pipeline import SpeechRecognizer

SILENCE = pcm_to_wav([b"\x00\x00" * 160], 16000)


class FakeModel:
    def __init__(self, texts=("hey trafficaz",)):
        self.texts = list(texts)
        self.calls = []

    def transcribe(self, samples, fp16=True, language=None):
        self.calls.append((len(samples), fp16, language))
        text = self.texts.pop(0) if self.texts else ""
        return {"text": f" {text} "}


class FakeAudio:
    """Stand-in for VoiceInput that records instantly unless gated."""

    def __init__(self, gate=None, delay=0.01, access=True):
        self.gate = gate
        self.delay = delay
        self.access = access
        self.recording = False
        self.closed = False
        self.closed_while_recording = False

    def check_access(self):
        return self.access

    def record(self, duration):
        self.recording = True
        try:
            if self.gate is not None:
                self.gate.wait(2)
            time.sleep(self.delay)
            return SILENCE
        finally:
            self.recording = False

    def close(self):
        self.closed_while_recording = self.recording
        self.closed = True


class BrokenAudio(FakeAudio):
    def record(self, duration):
        raise OSError("Input overflowed")


def make_recognizer(audio, model=None):
    heard, errors = [], []
    got = threading.Event()

    def on_transcript(text, final):
        heard.append((text, final))
        got.set()

    def on_error(exc):
        errors.append(exc)
        got.set()

    rec = SpeechRecognizer(on_transcript, on_error, model=model or FakeModel(), audio=audio)
    return rec, heard, errors, got


def test_transcripts_are_delivered_as_final():
    model = FakeModel(["Hey TrafficAZ"])
    rec, heard, errors, got = make_recognizer(FakeAudio(), model)
    rec.start()
    assert got.wait(2)
    rec.close()
    assert heard[0] == ("Hey TrafficAZ", True)
    assert errors == []
    assert model.calls[0] == (160, False, "en")


def test_empty_transcripts_are_skipped():
    model = FakeModel(["", "   ", "open map"])
    rec, heard, _, got = make_recognizer(FakeAudio(), model)
    rec.start()
    assert got.wait(2)
    rec.close()
    assert heard == [("open map", True)]


def test_result_from_stopped_loop_is_dropped():
    gate = threading.Event()
    audio = FakeAudio(gate=gate)
    rec, heard, errors, _ = make_recognizer(audio, FakeModel(["late words"]))
    rec.start()
    time.sleep(0.05)
    rec.stop()
    gate.set()
    rec.close()
    assert heard == []
    assert errors == []


def test_audio_failure_is_reported_as_recognition_error():
    rec, heard, errors, got = make_recognizer(BrokenAudio())
    rec.start()
    assert got.wait(2)
    rec.close()
    assert heard == []
    assert isinstance(errors[0], RecognitionError)
    assert "Input overflowed" in str(errors[0])


def test_start_twice_runs_one_capture_thread():
    gate = threading.Event()
    rec, _, _, _ = make_recognizer(FakeAudio(gate=gate))
    rec.start()
    rec.start()
    assert len(rec._threads) == 1
    gate.set()
    rec.close()


def test_close_waits_for_capture_before_releasing_audio():
    audio = FakeAudio(delay=0.2)
    rec, _, _, _ = make_recognizer(audio)
    rec.start()
    time.sleep(0.05)
    rec.close()
    assert audio.closed is True
    assert audio.closed_while_recording is False
    assert rec._threads == []


def test_request_permission_probes_the_microphone():
    rec, _, _, _ = make_recognizer(FakeAudio(access=False))
    assert asyncio.run(rec.request_permission()) is False
