"""
Derived time values read by commands.

playback_progress()   How far into the current track, as a percentage.
compute_time_delta()  How far apart two wall clocks are, with a
                      human-readable message ("1 hour and 5 minutes ahead").
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def playback_progress(start: Optional[int], end: Optional[int], now: int) -> Optional[float]:
    """Percentage of the track played, clamped to [0, 100].

    All timestamps are milliseconds since the epoch. Returns None when
    there is nothing to show (a missing timestamp, or end <= start);
    callers must not treat that as zero.
    """
    if start is None or end is None or end <= start:
        return None
    percent = (now - start) / (end - start) * 100
    return max(0.0, min(100.0, percent))


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


@dataclass(frozen=True)
class TimeDelta:
    """Signed offset of the reference clock relative to the local one.

    minutes > 0 means the reference clock is ahead.
    """
    minutes: int

    @property
    def same_clock(self) -> bool:
        return self.minutes == 0

    @property
    def message(self) -> str:
        if self.same_clock:
            return "same clock"
        hours, minutes = divmod(abs(self.minutes), 60)
        parts = []
        if hours:
            parts.append(_plural(hours, "hour"))
        if minutes:
            parts.append(_plural(minutes, "minute"))
        direction = "ahead" if self.minutes > 0 else "behind"
        return f"{' and '.join(parts)} {direction}"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def compute_time_delta(local: datetime, reference: datetime) -> TimeDelta:
    """Compare two wall-clock readings of the same instant.

    Only the wall-clock fields matter; any tzinfo is ignored. Offsets
    under one minute count as the same clock.
    """
    seconds = (reference.replace(tzinfo=None) - local.replace(tzinfo=None)).total_seconds()
    return TimeDelta(minutes=int(seconds / 60))


def wall_clock(instant: datetime, zone: Optional[str]) -> datetime:
    """The instant as seen on a clock in ``zone`` (system zone if None)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    if zone is None:
        return instant.astimezone()
    return instant.astimezone(ZoneInfo(zone))


def format_clock(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y, %H:%M:%S")
