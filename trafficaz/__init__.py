"""TrafficAZ voice activation: wake word, command routing and spoken replies."""

from trafficaz.dispatcher import State, VoiceDispatcher

__all__ = ["State", "VoiceDispatcher"]
