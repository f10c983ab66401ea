"""
Session state and the read-only view handlers get.

SessionState is the one mutable object per visitor. The dispatch engine
owns it; handlers never see it. They get a CommandContext instead: a
frozen, versioned record with an enumerated set of fields, plus hooks
for the few side effects that belong to the host (clearing the
transcript, switching theme, toggling the ASCII banner).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from config_manager import ClockConfig, SiteConfig
from presence_feed import PresenceSnapshot

from terminal_commands.history import HistoryNavigator
from terminal_commands.transcript import Transcript

CONTEXT_VERSION = 1


@dataclass
class SessionState:
    """Everything that belongs to one visitor's session."""
    transcript: Transcript = field(default_factory=Transcript)
    history: HistoryNavigator = field(default_factory=HistoryNavigator)
    theme: str = "dark"
    ascii_enabled: bool = True
    local_timezone: Optional[str] = None  # IANA name, None = server's zone


@dataclass(frozen=True)
class CommandContext:
    """What a handler may read, version 1.

    Attributes
    ----------
    invoked_as : str
        The token the visitor typed, after case folding. Differs from
        the command name when an alias was used.
    presence : PresenceSnapshot or None
        Latest cached snapshot; None until the feed delivers one.
    progress : float or None
        Playback progress of the current track, None when there is
        nothing to show.
    repositories : tuple
        Last fetched repository list (may be empty).
    commands : tuple of (name, description)
        The visible command listing, in registration order.
    history : tuple of str
        Lines submitted so far, oldest first.
    """
    invoked_as: str
    presence: Optional[PresenceSnapshot]
    progress: Optional[float]
    repositories: tuple
    commands: tuple[tuple[str, str], ...]
    history: tuple[str, ...]
    theme: str
    ascii_enabled: bool
    profile: SiteConfig
    clock: ClockConfig
    local_timezone: Optional[str]
    now: datetime
    weather: Optional[Any]
    clear_transcript: Callable[[], None]
    set_theme: Callable[[str], None]
    toggle_ascii: Callable[[], bool]
    version: int = CONTEXT_VERSION
