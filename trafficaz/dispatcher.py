"""Voice dispatcher: wake word, command routing and session lifecycle.

State machine::

    INACTIVE → start() → LISTENING → (wake word) → AWAKE
        → (command handled, reset_delay) → LISTENING → ... → stop() → INACTIVE

Everything the dispatcher reacts to (transcripts, recognizer errors, timer
expiries) is posted to one ``asyncio.Queue`` and handled by a single worker
task, in order. Recognizer threads hand events over with
``call_soon_threadsafe``.

Each wake-word detection starts a new session and bumps a session token.
Timers and handler speech carry the token they were created under and are
dropped when it is no longer current, so a late timer from an old session
can never reset a newer one.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from trafficaz.errors import ErrorKind, MicrophonePermissionDenied
from trafficaz.router import CommandRouter
from trafficaz.voice_output import VoiceSettings

log = logging.getLogger(__name__)

DEFAULT_WAKE_WORD = "hey trafficaz"

PROMPT_ENABLED = 'Voice activation enabled. Say "Hey TrafficAZ" to activate.'
PROMPT_START_FAILED = "Failed to start voice activation. Please check microphone permissions."
PROMPT_DISABLED = "Voice activation disabled."
PROMPT_LISTENING = "I'm listening. How can I help you with traffic?"
PROMPT_NOT_ENABLED = "Voice activation is not enabled. Please enable it first."
FALLBACK_MESSAGE = (
    "I didn't understand that command. Try asking about traffic, "
    "reporting traffic, or checking alerts."
)


class State(str, Enum):
    INACTIVE = "inactive"
    LISTENING = "listening"
    AWAKE = "awake"


# ---------------------------------------------------------------------------
# Inbound events (queued, handled by the worker)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Transcript:
    text: str
    final: bool = True


@dataclass(frozen=True)
class RecognitionFailed:
    error: Exception


@dataclass(frozen=True)
class ResetDue:
    token: int


@dataclass(frozen=True)
class CommandTimeout:
    token: int


@dataclass(frozen=True)
class RestartDue:
    run_id: int


# ---------------------------------------------------------------------------
# Outbound events (published to listeners)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class WakeDetected:
    token: int


@dataclass(frozen=True)
class CommandResolved:
    token: int
    intent: Optional[str]
    result: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class DispatchError:
    kind: ErrorKind
    error: Exception


Listener = Callable[[Any], None]


def _normalise(text: str) -> str:
    return " ".join(text.split()).strip(" ,.!?;:")


class VoiceDispatcher:
    def __init__(
        self,
        router: CommandRouter,
        recognizer: Any,
        speaker: Any,
        *,
        wake_word: str = DEFAULT_WAKE_WORD,
        settings: Optional[VoiceSettings] = None,
        reset_delay: float = 2.0,
        restart_delay: float = 2.0,
        command_timeout: float = 8.0,
    ):
        self.router = router
        self.wake_word = wake_word.lower()
        self.reset_delay = reset_delay
        self.restart_delay = restart_delay
        self.command_timeout = command_timeout
        self._recognizer = recognizer
        self._speaker = speaker
        self._settings = settings or VoiceSettings()

        self._state = State.INACTIVE
        self._token = 0
        self._run_id = 0
        self._resolved = False
        self._listeners: List[Listener] = []
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Properties and configuration
    # ------------------------------------------------------------------
    @property
    def state(self) -> State:
        return self._state

    @property
    def session(self) -> int:
        return self._token

    @property
    def settings(self) -> VoiceSettings:
        return self._settings

    def set_voice_settings(self, **changes: Any) -> VoiceSettings:
        self._settings = self._settings.update(**changes)
        return self._settings

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [cb for cb in self._listeners if cb is not listener]

    def status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "active": self._state is not State.INACTIVE,
            "listening": self._state is State.LISTENING,
            "wake_word": self.wake_word,
            "session": self._token,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> bool:
        """Begin listening for the wake word. Safe to call when already active."""
        self._ensure_worker()
        if self._state is not State.INACTIVE:
            return True

        try:
            granted = await self._recognizer.request_permission()
        except Exception as exc:
            log.warning("Microphone permission check failed: %s", exc)
            granted = False
        if not granted:
            log.warning("Microphone permission denied; staying inactive")
            self._publish(
                DispatchError(
                    ErrorKind.PERMISSION_DENIED,
                    MicrophonePermissionDenied("Microphone permission denied"),
                )
            )
            await self._say(PROMPT_START_FAILED, force=True)
            return False

        # A concurrent start() may have finished while we waited.
        if self._state is not State.INACTIVE:
            return True
        self._run_id += 1
        self._set_state(State.LISTENING)
        self._recognizer.start()
        log.info("Voice activation started, wake word: %s", self.wake_word)
        await self._say(PROMPT_ENABLED)
        return True

    async def stop(self) -> None:
        """Deactivate from any state. In-flight handlers finish silently."""
        if self._state is State.INACTIVE:
            return
        self._token += 1
        self._run_id += 1
        self._resolved = False
        self._cancel_timers()
        self._set_state(State.INACTIVE)
        self._recognizer.stop()
        log.info("Voice activation stopped")
        await self._say(PROMPT_DISABLED, force=True)

    async def close(self) -> None:
        await self.stop()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        close = getattr(self._recognizer, "close", None)
        if close is not None:
            close()

    async def test_activation(self) -> bool:
        """Simulate hearing the wake word."""
        if self._state is State.INACTIVE:
            await self._say(PROMPT_NOT_ENABLED, force=True)
            return False
        self._post(Transcript(self.wake_word))
        return True

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    # ------------------------------------------------------------------
    # Inputs (callable from any thread)
    # ------------------------------------------------------------------
    def submit_transcript(self, text: str, final: bool = True) -> None:
        self._post(Transcript(text, final))

    def submit_error(self, error: Exception) -> None:
        self._post(RecognitionFailed(error))

    def _post(self, event: Any) -> None:
        if self._loop is None or self._queue is None:
            log.debug("Dispatcher not running, dropping %r", event)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _ensure_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._loop = asyncio.get_running_loop()
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = self._loop.create_task(self._run())

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._handle(event)
            except Exception:
                log.exception("Error while dispatching %r", event)
            finally:
                self._queue.task_done()

    async def _handle(self, event: Any) -> None:
        if isinstance(event, Transcript):
            await self._on_transcript(event)
        elif isinstance(event, RecognitionFailed):
            self._on_recognition_error(event.error)
        elif isinstance(event, ResetDue):
            self._on_reset(event.token)
        elif isinstance(event, CommandTimeout):
            self._on_command_timeout(event.token)
        elif isinstance(event, RestartDue):
            self._on_restart(event.run_id)

    async def _on_transcript(self, event: Transcript) -> None:
        text = event.text.lower().strip()
        if self._state is State.LISTENING:
            if self.wake_word not in text:
                return
            await self._wake()
            if not event.final:
                return
            # Whatever follows the wake phrase in the same utterance is the command.
            command = _normalise(text.partition(self.wake_word)[2])
        elif self._state is State.AWAKE and not self._resolved and event.final:
            command = _normalise(text.replace(self.wake_word, " "))
        else:
            log.debug("Ignoring transcript (%s): %s", self._state.value, text)
            return
        if command:
            await self._dispatch_command(command, event.text.strip())

    async def _wake(self) -> None:
        self._token += 1
        token = self._token
        self._resolved = False
        self._set_state(State.AWAKE)
        log.info("Wake word detected (session %d)", token)
        self._publish(WakeDetected(token))
        await self._say(PROMPT_LISTENING, token=token)
        self._schedule("timeout", self.command_timeout, CommandTimeout(token), token)

    async def _dispatch_command(self, command: str, transcript: str) -> None:
        """Route the normalised ``command``; the handler gets the raw ``transcript``."""
        token = self._token
        self._resolved = True
        self._cancel("timeout")
        # Keep the recognizer from transcribing our own replies.
        self._recognizer.stop()

        say = functools.partial(self._say, token=token)
        intent: Optional[str] = None
        result: Optional[Dict[str, Any]] = None
        match = self.router.match(command)
        if match is None:
            log.info("No command matched: %s", command)
            await say(FALLBACK_MESSAGE)
        else:
            entry, pattern = match
            intent = entry.intent
            log.info("Command %s matched on %r", intent, pattern)
            try:
                result = await entry.handler(transcript, say)
            except Exception as exc:
                log.exception("Error handling command %s", intent)
                self._publish(DispatchError(ErrorKind.HANDLER, exc))

        if token != self._token:
            log.debug("Session %d ended while handling %s", token, intent)
            return
        self._publish(CommandResolved(token, intent, result))
        self._schedule("reset", self.reset_delay, ResetDue(token), token)

    def _on_reset(self, token: int) -> None:
        if token != self._token or self._state is not State.AWAKE:
            log.debug("Discarding stale reset for session %d", token)
            return
        self._resolved = False
        self._set_state(State.LISTENING)
        self._recognizer.start()

    def _on_command_timeout(self, token: int) -> None:
        if token != self._token or self._state is not State.AWAKE or self._resolved:
            log.debug("Discarding stale command timeout for session %d", token)
            return
        log.info("No command heard, back to listening")
        self._set_state(State.LISTENING)

    def _on_recognition_error(self, error: Exception) -> None:
        log.error("Speech recognition error: %s", error)
        self._publish(DispatchError(ErrorKind.RECOGNITION, error))
        if self._state is State.INACTIVE:
            return
        self._recognizer.stop()
        self._schedule("restart", self.restart_delay, RestartDue(self._run_id))

    def _on_restart(self, run_id: int) -> None:
        if run_id != self._run_id or self._state is State.INACTIVE:
            return
        if self._state is State.AWAKE and self._resolved:
            # The pending reset restarts the recognizer.
            return
        log.info("Restarting speech recognition")
        self._recognizer.start()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _set_state(self, state: State) -> None:
        if state is self._state:
            return
        log.info("Voice: %s → %s", self._state.value, state.value)
        self._state = state

    def _publish(self, event: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception("Listener failed on %r", event)

    def _schedule(self, name: str, delay: float, event: Any, token: Optional[int] = None) -> None:
        if token is not None and token != self._token:
            return
        self._cancel(name)
        self._timers[name] = self._loop.call_later(delay, self._post, event)

    def _cancel(self, name: str) -> None:
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    def _cancel_timers(self) -> None:
        for name in list(self._timers):
            self._cancel(name)

    async def _say(self, text: str, token: Optional[int] = None, force: bool = False) -> None:
        if not force:
            if self._state is State.INACTIVE:
                log.debug("Inactive, not speaking: %s", text)
                return
            if token is not None and token != self._token:
                log.debug("Stale session %d, not speaking: %s", token, text)
                return
        try:
            await self._speaker.speak(text, self._settings)
        except Exception as exc:
            log.error("Speech error: %s", exc)
