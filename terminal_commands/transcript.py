"""
The scrolling transcript: input echoes and command output, in the order
they were appended. Hosts render it by listening for "append" and
"clear" events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

INPUT = "input"
OUTPUT = "output"
ERROR = "error"


@dataclass(frozen=True)
class TranscriptEntry:
    kind: str  # INPUT, OUTPUT or ERROR
    text: str
    command: Optional[str] = None
    details: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "text": self.text,
            "command": self.command,
            "details": self.details,
            "timestamp": self.timestamp,
        }


TranscriptListener = Callable[[str, Optional[TranscriptEntry]], None]


class Transcript:
    """Append-only list of entries that can be wiped by ``clear``."""

    def __init__(self):
        self._entries: list[TranscriptEntry] = []
        self._listeners: list[TranscriptListener] = []

    def add_listener(self, listener: TranscriptListener) -> None:
        """listener(event, entry); entry is None for "clear"."""
        self._listeners.append(listener)

    def append(self, entry: TranscriptEntry) -> None:
        self._entries.append(entry)
        self._notify("append", entry)

    def clear(self) -> None:
        self._entries.clear()
        self._notify("clear", None)

    def _notify(self, event: str, entry: Optional[TranscriptEntry]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, entry)
            except Exception as e:
                logger.error(f"Transcript listener error: {e}")

    @property
    def entries(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
