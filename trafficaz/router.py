"""Command router for the voice assistant.

Maps intents to ordered lists of trigger phrases. A transcript is matched by
plain substring search: entries are tried in registration order and, within
an entry, patterns in the order they were listed. The first hit wins.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

Say = Callable[[str], Awaitable[None]]
Handler = Callable[[str, Say], Awaitable[Optional[Dict[str, Any]]]]


@dataclass(frozen=True)
class CommandEntry:
    intent: str
    patterns: Tuple[str, ...]
    handler: Handler


class CommandRouter:
    def __init__(self):
        self._entries: List[CommandEntry] = []

    def register(self, intent: str, patterns: List[str], handler: Handler) -> None:
        """Register a handler for ``intent``, triggered by any of ``patterns``.

        The handler receives the full transcript and a ``say`` coroutine for
        spoken replies. Registration order is match priority.
        """
        if any(entry.intent == intent for entry in self._entries):
            raise ValueError(f"intent already registered: {intent}")
        self._entries.append(
            CommandEntry(intent, tuple(p.lower() for p in patterns), handler)
        )

    @property
    def entries(self) -> Tuple[CommandEntry, ...]:
        return tuple(self._entries)

    def match(self, transcript: str) -> Optional[Tuple[CommandEntry, str]]:
        lowered = transcript.lower()
        for entry in self._entries:
            for pattern in entry.patterns:
                if pattern in lowered:
                    return entry, pattern
        return None
