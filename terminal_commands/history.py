"""
Command history with up/down navigation.

The cursor counts from the newest entry: -1 means "not browsing",
0 is the most recent line, len(history) - 1 the oldest. Browsing past
either end stays put, so holding a key never errors.
"""

from __future__ import annotations

from enum import Enum


class Direction(Enum):
    OLDER = "older"  # arrow up
    NEWER = "newer"  # arrow down


class HistoryNavigator:
    """Submitted lines in order, plus the browsing cursor."""

    def __init__(self):
        self._entries: list[str] = []
        self.cursor = -1

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def record_submission(self, line: str) -> None:
        self._entries.append(line)
        self.cursor = -1

    def navigate(self, direction: Direction | str) -> str:
        """Move the cursor and return the line to put in the input box."""
        direction = Direction(direction)
        length = len(self._entries)

        if direction is Direction.OLDER:
            self.cursor = min(self.cursor + 1, length - 1)
        else:
            self.cursor = max(self.cursor - 1, -1)

        if self.cursor < 0:
            return ""
        return self._entries[length - 1 - self.cursor]

    def __len__(self) -> int:
        return len(self._entries)
