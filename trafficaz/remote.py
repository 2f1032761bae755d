"""Speech transport for remote devices.

When the dispatcher runs behind the HTTP API the microphone and speaker live
on the client: transcripts arrive in requests and spoken replies go back in
responses. These two adapters fill the recognizer and speaker slots for that
setup.
"""

import logging
from collections import deque
from typing import Deque, List

from trafficaz.voice_output import VoiceSettings

log = logging.getLogger(__name__)


class RemoteRecognizer:
    """Recognizer stand-in; the client decides when it is listening."""

    def __init__(self, permission: bool = True):
        self.permission = permission
        self.listening = False

    async def request_permission(self) -> bool:
        return self.permission

    def start(self):
        self.listening = True

    def stop(self):
        self.listening = False


class SpeechLog:
    """Collects spoken replies so they can be returned to the client."""

    def __init__(self, maxlen: int = 200):
        self._lines: Deque[str] = deque(maxlen=maxlen)
        self._total = 0

    async def speak(self, text: str, settings: VoiceSettings) -> None:
        log.info("Say (%s): %s", settings.language, text)
        self._lines.append(text)
        self._total += 1

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def mark(self) -> int:
        return self._total

    def since(self, mark: int) -> List[str]:
        count = min(self._total - mark, len(self._lines))
        return list(self._lines)[len(self._lines) - count:] if count > 0 else []
