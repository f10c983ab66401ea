"""
Dispatch Engine
===============

Turns one submitted line into transcript output.

    User types: "echo Hello World"
                  ↓
    Trim, split → token "echo", args ["Hello", "World"]
                  ↓
    History gets "echo Hello World", cursor reset
                  ↓
    Transcript gets the echo "visitor@host:~$ echo Hello World"
                  ↓
    Registry resolves "echo" → handler(args, context)
                  ↓
    Transcript gets "Hello World"

The echo lands before the handler runs, so the visitor sees what they
typed even when the handler is slow or fails. Handler failures stop
here: they are logged and become one generic error line.

Asynchronous handlers are awaited. Nothing is cancelled, so when a host
runs several submissions as separate tasks their output lands in
completion order.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from config_manager import ClockConfig, SiteConfig
from presence_feed import PresenceSnapshot

from terminal_commands.context import CommandContext, SessionState
from terminal_commands.dispatcher import CommandRegistry, CommandResult
from terminal_commands.history import Direction
from terminal_commands.timekeeping import playback_progress
from terminal_commands.transcript import ERROR, INPUT, OUTPUT, TranscriptEntry

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Command not found: {token}. Type 'help' for a list of commands."
FAILED_MESSAGE = "Command failed: {name}. Please try again later."


class DispatchEngine:
    """Runs commands for one session.

    Parameters
    ----------
    registry : CommandRegistry
        Read-only command table shared by all sessions.
    session : SessionState
        This visitor's transcript, history, theme and flags.
    presence : callable, optional
        Returns the latest cached PresenceSnapshot (or None). Called at
        dispatch time, never awaited.
    repositories : callable, optional
        Returns the latest repository tuple.
    weather : optional
        Weather source handed through to the weather command.
    on_theme_change, on_ascii_toggle : callable, optional
        Host hooks notified after the session state changed.
    clock : callable, optional
        Returns the current aware datetime; tests pin it.
    """

    def __init__(self, registry: CommandRegistry, session: Optional[SessionState] = None,
                 presence: Optional[Callable[[], Optional[PresenceSnapshot]]] = None,
                 repositories: Optional[Callable[[], tuple]] = None,
                 weather=None,
                 profile: Optional[SiteConfig] = None,
                 clock_config: Optional[ClockConfig] = None,
                 on_theme_change: Optional[Callable[[str], None]] = None,
                 on_ascii_toggle: Optional[Callable[[bool], None]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.registry = registry
        self.session = session or SessionState()
        self.presence = presence or (lambda: None)
        self.repositories = repositories or (lambda: ())
        self.weather = weather
        self.profile = profile or SiteConfig()
        self.clock_config = clock_config or ClockConfig()
        self.on_theme_change = on_theme_change
        self.on_ascii_toggle = on_ascii_toggle
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def prompt(self) -> str:
        return self.profile.prompt

    async def submit(self, raw_line: str) -> Optional[CommandResult]:
        """Run one line typed by the visitor.

        Returns the handler's result (None for blank input, unknown
        commands, and handlers with no output).
        """
        line = raw_line.strip()
        if not line:
            return None

        token, *args = line.split()
        token = token.casefold()

        self.session.history.record_submission(line)
        self.session.transcript.append(TranscriptEntry(
            kind=INPUT, text=line, details={"prompt": self.prompt}
        ))

        command = self.registry.resolve(token)
        if command is None:
            self.session.transcript.append(TranscriptEntry(
                kind=ERROR, text=NOT_FOUND_MESSAGE.format(token=token)
            ))
            return None

        return await self._execute(command, token, args)

    async def greet(self) -> Optional[CommandResult]:
        """Run the welcome command without echo or history."""
        command = self.registry.resolve("welcome")
        if command is None:
            return None
        return await self._execute(command, "welcome", [])

    def navigate(self, direction: Direction | str) -> str:
        return self.session.history.navigate(direction)

    async def _execute(self, command, token: str, args: list[str]) -> Optional[CommandResult]:
        context = self._build_context(token)
        try:
            result = command.handler(args, context)
            if inspect.isawaitable(result):
                result = await result
            if result is not None and not isinstance(result, CommandResult):
                raise TypeError(f"Handler returned {type(result).__name__}, not CommandResult")
        except Exception:
            logger.exception(f"Command '{command.name}' raised")
            result = CommandResult(
                command=command.name, summary="",
                error=FAILED_MESSAGE.format(name=command.name),
            )

        if result is not None:
            self.session.transcript.append(TranscriptEntry(
                kind=ERROR if result.is_error else OUTPUT,
                text=result.text,
                command=result.command,
                details=result.details,
            ))
        return result

    def _build_context(self, token: str) -> CommandContext:
        now = self.clock()
        snapshot = self.presence()
        progress = None
        if snapshot is not None and snapshot.track is not None:
            progress = playback_progress(
                snapshot.track.start_timestamp,
                snapshot.track.end_timestamp,
                int(now.timestamp() * 1000),
            )

        return CommandContext(
            invoked_as=token,
            presence=snapshot,
            progress=progress,
            repositories=tuple(self.repositories()),
            commands=tuple((c.name, c.description) for c in self.registry.list_visible()),
            history=self.session.history.entries,
            theme=self.session.theme,
            ascii_enabled=self.session.ascii_enabled,
            profile=self.profile,
            clock=self.clock_config,
            local_timezone=self.session.local_timezone,
            now=now,
            weather=self.weather,
            clear_transcript=self._clear_transcript,
            set_theme=self._set_theme,
            toggle_ascii=self._toggle_ascii,
        )

    # Host-side effects reachable from handlers

    def _clear_transcript(self) -> None:
        self.session.transcript.clear()

    def _set_theme(self, theme: str) -> None:
        self.session.theme = theme
        if self.on_theme_change:
            self.on_theme_change(theme)

    def _toggle_ascii(self) -> bool:
        self.session.ascii_enabled = not self.session.ascii_enabled
        if self.on_ascii_toggle:
            self.on_ascii_toggle(self.session.ascii_enabled)
        return self.session.ascii_enabled
