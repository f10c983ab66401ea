"""
TigerLake Terminal Command System
=================================

The command shell behind the TigerLake terminal page. A visitor types a
line, the shell resolves its first word against a registry, runs the
handler, and appends the output to a scrolling transcript. The same
engine serves the local terminal host and every websocket session of
the web host.

Architecture Overview
---------------------

    ┌─────────────────┐     ┌──────────────────┐     ┌───────────────────┐
    │  Visitor input   │────►│  DispatchEngine   │────►│  Transcript       │
    │  (CLI or page)   │     │  .submit(line)    │     │  (host renders)   │
    └─────────────────┘     └───────┬──────────┘     └───────────────────┘
                                    │
                  ┌─────────────────┼──────────────────┐
                  ▼                 ▼                  ▼
           HistoryNavigator   CommandRegistry    CommandContext
           (up/down arrows)   + AliasTable       (read-only view:
                                                  presence snapshot,
                                                  progress, repos,
                                                  host hooks)

The presence feed (presence_feed.py) runs on its own. The engine never
waits for it; it reads whatever snapshot is cached when a command runs.

Integration
-----------
Each host builds one SessionState and one DispatchEngine per visitor:

    from terminal_commands import registry
    from terminal_commands.engine import DispatchEngine

    engine = DispatchEngine(registry, presence=lambda: reconciler.snapshot)
    engine.session.transcript.add_listener(render)
    await engine.submit("help")

Extending the Command System
----------------------------
A command is a name, a one-line description and a handler:

    def uptime(args, ctx):
        return CommandResult(command="uptime", summary="Up since boot")

    registry.register("uptime", "How long the site has been up", uptime)
    registry.add_alias("up", "uptime")

Handlers may be ``async def``; the engine awaits them. Anything a
handler raises is caught by the engine and shown as one generic error
line.

Module Structure
----------------
    terminal_commands/
    ├── __init__.py      ← This file. Builds the default registry.
    ├── dispatcher.py    ← CommandRegistry, AliasTable, Command, CommandResult.
    ├── engine.py        ← DispatchEngine: submit, greet, navigate.
    ├── context.py       ← SessionState, CommandContext (version 1).
    ├── history.py       ← HistoryNavigator.
    ├── transcript.py    ← Transcript, TranscriptEntry.
    ├── timekeeping.py   ← Playback progress and time-zone delta.
    └── builtins.py      ← help, about, skills, projects, ... weather.
"""

from terminal_commands.dispatcher import (
    Command,
    CommandRegistry,
    CommandResult,
    DuplicateCommandError,
    UnknownCommandError,
)
from terminal_commands.builtins import register_builtins


def build_default_registry() -> CommandRegistry:
    """A frozen registry holding the built-in commands and aliases."""
    default = CommandRegistry()
    register_builtins(default)
    default.freeze()
    return default


registry = build_default_registry()

__all__ = [
    'registry',
    'build_default_registry',
    'Command',
    'CommandRegistry',
    'CommandResult',
    'DuplicateCommandError',
    'UnknownCommandError',
]
