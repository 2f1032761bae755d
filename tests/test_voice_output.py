"""Tests for the Coqui TTS wrapper, using a fake engine instead of a model."""

import asyncio

from trafficaz.voice_output import VoiceOutput, VoiceSettings


class FakeSynthesizer:
    output_sample_rate = 24000


class FakeTTS:
    def __init__(self, multi_lingual=False, multi_speaker=False):
        self.is_multi_lingual = multi_lingual
        self.is_multi_speaker = multi_speaker
        self.synthesizer = FakeSynthesizer()
        self.calls = []

    def tts(self, text, **kwargs):
        self.calls.append((text, kwargs))
        return [0.0, 0.25, -0.25]


def test_warm_up_and_native_sample_rate():
    engine = FakeTTS()
    out = VoiceOutput(engine=engine)
    assert engine.calls == [("warm up", {})]
    assert out.sample_rate == 24000
    assert VoiceOutput(engine=FakeTTS(), sample_rate=16000, warm_up=False).sample_rate == 16000


def test_rate_maps_to_speed_and_pitch_is_ignored():
    out = VoiceOutput(engine=FakeTTS(), warm_up=False)
    kwargs = out._synth_kwargs(VoiceSettings(pitch=1.5, rate=1.2, voice="p225"))
    assert kwargs == {"speed": 1.2}


def test_speaker_and_language_for_capable_models():
    out = VoiceOutput(engine=FakeTTS(multi_lingual=True, multi_speaker=True), warm_up=False)
    kwargs = out._synth_kwargs(VoiceSettings(language="fr-FR", voice="Ana Florence"))
    assert kwargs == {"speed": 0.8, "speaker": "Ana Florence", "language": "fr"}
    assert "speaker" not in out._synth_kwargs(VoiceSettings())


def test_speak_synthesises_and_plays(monkeypatch):
    engine = FakeTTS()
    out = VoiceOutput(engine=engine, warm_up=False)
    played = []
    monkeypatch.setattr(out, "_play", lambda wav: played.append(wav))

    asyncio.run(out.speak("Voice activation disabled.", VoiceSettings(rate=1.0)))

    assert engine.calls == [("Voice activation disabled.", {"speed": 1.0})]
    assert played[0].dtype.name == "float32"
    assert played[0].tolist() == [0.0, 0.25, -0.25]


def test_none_resets_a_setting_to_its_default():
    settings = VoiceSettings(rate=1.1, voice="p225")
    reset = settings.update(voice=None)
    assert reset.voice is None
    assert reset.rate == 1.1
    assert settings.update(rate=None).rate == 0.8
