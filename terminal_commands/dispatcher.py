"""
Command Registry
================

The central routing table for terminal commands.

Role in the System
------------------
Every line a visitor types starts with a command token. This module
answers one question about that token: which command, if any, does it
name? The answer is a two-level lookup:

    User types: "np"
                  ↓
    Alias table: "np" → "music"
                  ↓
    Registry: "music" → Command(description, handler)

    User types: "xyz123"
                  ↓
    Alias table: no entry, token stays "xyz123"
                  ↓
    Registry: no entry → None (not found)

Design Decisions
----------------
- Tokens are case-insensitive ("HELP", "Help" and "help" all work).
- Aliases point at canonical names only, never at other aliases, so
  resolving is always a single hop. A canonical command and its aliases
  share one Command object; there is nothing to drift apart.
- An unknown token resolves to None, not an exception. Mistyped commands
  are everyday input; the caller branches on the result.
- The help listing shows canonical commands only, in the order they were
  registered.
- After ``freeze()`` the registry is read-only.

Classes
-------
CommandResult
    Structured output from a handler: summary text for the transcript,
    details dict for rich renderers, optional error.

Command
    Immutable record of one canonical command.

AliasTable
    Alternate name → canonical name.

CommandRegistry
    The registry and resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence, Union


@dataclass
class CommandResult:
    """Structured output from a command execution.

    Attributes
    ----------
    command : str
        The canonical command name that produced this result
        (e.g., "music"). Used by renderers to pick a layout.

    summary : str
        Human-readable text appended to the transcript. May span
        several lines.

    details : dict
        Structured data for rich rendering. Each command defines its
        own schema. For music: {"title": ..., "artist": ...,
        "external_url": ..., "progress": 42.0}

    error : str or None
        If set, the command recognized the input but couldn't
        satisfy it. The summary field is ignored when error is set.
    """
    command: str
    summary: str
    details: dict = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        """Check if this result represents an error."""
        return self.error is not None

    @property
    def text(self) -> str:
        """The line that ends up in the transcript."""
        return self.error if self.is_error else self.summary


HandlerReturn = Union[Optional[CommandResult], Awaitable[Optional[CommandResult]]]
Handler = Callable[[Sequence[str], Any], HandlerReturn]


class DuplicateCommandError(ValueError):
    """A command or alias name is already taken."""


class UnknownCommandError(ValueError):
    """An alias points at a name that is not a canonical command."""


@dataclass(frozen=True)
class Command:
    """One canonical command.

    The handler is called as ``handler(args, context)`` and returns a
    CommandResult, None (no output), or an awaitable of either.
    """
    name: str
    description: str
    handler: Handler


class AliasTable:
    """Alternate names for canonical commands."""

    def __init__(self):
        self._aliases: dict[str, str] = {}

    def add(self, alias: str, canonical: str) -> None:
        self._aliases[alias.lower()] = canonical.lower()

    def lookup(self, token: str) -> Optional[str]:
        return self._aliases.get(token.lower())

    def items(self) -> list[tuple[str, str]]:
        return list(self._aliases.items())

    def __contains__(self, token: str) -> bool:
        return token.lower() in self._aliases

    def __len__(self) -> int:
        return len(self._aliases)


class CommandRegistry:
    """Canonical commands plus their aliases.

    Usage
    -----
        registry = CommandRegistry()
        registry.register("music", "Display currently playing music", music)
        registry.add_alias("np", "music")
        registry.freeze()

        command = registry.resolve("NP")   # same Command as resolve("music")
        if command is None:
            ...  # unknown token
    """

    def __init__(self):
        self._commands: dict[str, Command] = {}  # insertion order = help order
        self.aliases = AliasTable()
        self._frozen = False

    def _check_writable(self) -> None:
        if self._frozen:
            raise RuntimeError("Command registry is read-only after initialization")

    def _check_free(self, key: str) -> None:
        if key in self._commands:
            raise DuplicateCommandError(
                f"Command name collision: '{key}' is already a command"
            )
        if key in self.aliases:
            raise DuplicateCommandError(
                f"Command name collision: '{key}' is already an alias "
                f"for '{self.aliases.lookup(key)}'"
            )

    def register(self, name: str, description: str, handler: Handler) -> Command:
        """Register a canonical command.

        Raises
        ------
        DuplicateCommandError
            If the name (case-insensitively) is already a command or alias.
        """
        self._check_writable()
        key = name.lower()
        self._check_free(key)
        command = Command(name=key, description=description, handler=handler)
        self._commands[key] = command
        return command

    def add_alias(self, alias: str, canonical: str) -> None:
        """Register an alternate name for a canonical command.

        Raises
        ------
        DuplicateCommandError
            If the alias collides with a command or another alias.
        UnknownCommandError
            If ``canonical`` is not a registered canonical command.
        """
        self._check_writable()
        key = alias.lower()
        target = canonical.lower()
        self._check_free(key)
        if target not in self._commands:
            raise UnknownCommandError(
                f"Alias '{key}' must point at a canonical command, not '{target}'"
            )
        self.aliases.add(key, target)

    def freeze(self) -> None:
        self._frozen = True

    def resolve(self, token: str) -> Optional[Command]:
        """Alias table first, then the registry. None means not found."""
        key = token.lower()
        canonical = self.aliases.lookup(key) or key
        return self._commands.get(canonical)

    def list_visible(self) -> list[Command]:
        """Canonical commands in registration order (aliases excluded)."""
        return list(self._commands.values())

    def __contains__(self, token: str) -> bool:
        return self.resolve(token) is not None

    def __len__(self) -> int:
        return len(self._commands)
