"""
Built-in Commands
=================

The command set every session starts with. Each handler has the same
shape, ``handler(args, context) -> CommandResult | None``, and only
reads the CommandContext it is given. Side effects that belong to the
host (clearing the transcript, switching theme, toggling the banner)
go through the context hooks.

    help      List commands                      (alias: ls)
    about     About me                           (alias: info)
    skills    Skills                             (alias: tech)
    projects  Top repositories                   (alias: repos)
    socials   Contact links                      (alias: sm)
    clear     Clear the transcript               (alias: cls)
    theme     Switch light/dark                  (aliases: light, dark)
    music     Currently playing track            (alias: np)
    ascii     Toggle the ASCII banner
    echo      Print the arguments back
    date      Local time vs. the owner's clock   (alias: time)
    welcome   Greeting and presence status       (alias: hi)
    weather   Current weather for a city

Output Format
-------------
``summary`` is plain text (the terminal host prints it as is).
``details`` carries the same data structured for the web page, e.g.
music returns {"title", "artist", "external_url", "album_art_url",
"progress"} so the page can draw the album art and a progress bar.
"""

from __future__ import annotations

from typing import Sequence

from external_data import ExternalDataError
from terminal_commands.context import CommandContext
from terminal_commands.dispatcher import CommandRegistry, CommandResult
from terminal_commands.timekeeping import compute_time_delta, format_clock, wall_clock

ASCII_CAT = r"""
 /\_/\
( o.o )
 > ^ <
"""

ASCII_LOGO = r"""
 _   _                 _       _
| |_(_) __ _  ___ _ __| | __ _| | _____
| __| |/ _` |/ _ \ '__| |/ _` | |/ / _ \
| |_| | (_| |  __/ |  | | (_| |   <  __/
 \__|_|\__, |\___|_|  |_|\__,_|_|\_\___|
  |___/
   v1.0
"""

BANNER = ASCII_CAT + ASCII_LOGO

SKILLS = ("JavaScript", "TypeScript", "React", "Node.js", "Python", "And more!")

ABOUT_TEXT = (
    "I'm a passionate developer who loves creating unique web experiences! "
    "Check out my projects and skills for more info."
)

BUILTIN_ALIASES = {
    "repos": "projects",
    "ls": "help",
    "info": "about",
    "tech": "skills",
    "sm": "socials",
    "cls": "clear",
    "light": "theme",
    "dark": "theme",
    "np": "music",
    "time": "date",
    "hi": "welcome",
}


def help_command(args: Sequence[str], ctx: CommandContext) -> CommandResult:
    lines = ["Available commands:"]
    lines.extend(f"{name}: {description}" for name, description in ctx.commands)
    return CommandResult(
        command="help",
        summary="\n".join(lines),
        details={"commands": [{"name": n, "description": d} for n, d in ctx.commands]},
    )


def about_command(args, ctx):
    return CommandResult(command="about", summary=ABOUT_TEXT)


def skills_command(args, ctx):
    return CommandResult(
        command="skills",
        summary="\n".join(f"• {skill}" for skill in SKILLS),
        details={"skills": list(SKILLS)},
    )


def projects_command(args: Sequence[str], ctx: CommandContext) -> CommandResult:
    """Top repositories, as fetched at start-up."""
    if not ctx.repositories:
        return CommandResult(
            command="projects",
            summary="No repositories to show yet. Try again in a moment.",
        )

    lines = ["My top GitHub repositories:"]
    for repo in ctx.repositories:
        description = repo.description or "No description"
        lines.append(
            f"{repo.name:<24} {description} "
            f"(★ {repo.stargazers_count}, forks {repo.forks_count})"
        )
    return CommandResult(
        command="projects",
        summary="\n".join(lines),
        details={"repositories": [repo.to_dict() for repo in ctx.repositories]},
    )


def socials_command(args, ctx):
    profile = ctx.profile
    links = [
        ("GitHub", f"@{profile.github_user}", f"https://github.com/{profile.github_user}"),
        ("Twitter", f"@{profile.twitter_handle}", f"https://twitter.com/{profile.twitter_handle}"),
        ("Discord", f"@{profile.discord_handle}", f"https://discord.com/users/{profile.discord_id}"),
    ]
    return CommandResult(
        command="socials",
        summary="\n".join(f"{site}: {handle} ({url})" for site, handle, url in links),
        details={"links": [{"site": s, "handle": h, "url": u} for s, h, u in links]},
    )


def clear_command(args, ctx):
    ctx.clear_transcript()
    return None


def theme_command(args: Sequence[str], ctx: CommandContext) -> CommandResult:
    """``light`` selects light, anything else dark.

    Invoked through the ``light``/``dark`` alias with no argument, the
    alias itself names the theme.
    """
    requested = args[0].lower() if args else ctx.invoked_as
    theme = "light" if requested == "light" else "dark"
    ctx.set_theme(theme)
    return CommandResult(
        command="theme",
        summary=f"Theme set to {theme}.",
        details={"theme": theme},
    )


def music_command(args: Sequence[str], ctx: CommandContext) -> CommandResult:
    track = ctx.presence.track if ctx.presence else None
    if track is None:
        return CommandResult(command="music", summary="No music is currently playing.")

    lines = [f"Now playing: {track.display_name}"]
    if track.album:
        lines.append(f"Album: {track.album}")
    if track.external_url:
        lines.append(f"Listen: {track.external_url}")
    if ctx.progress is not None:
        lines.append(f"Progress: {ctx.progress:.0f}%")

    details = track.to_dict()
    details["progress"] = ctx.progress
    return CommandResult(command="music", summary="\n".join(lines), details=details)


def ascii_command(args, ctx):
    shown = ctx.toggle_ascii()
    return CommandResult(
        command="ascii",
        summary=f"ASCII art {'shown' if shown else 'hidden'}",
        details={"ascii_enabled": shown, "banner": BANNER if shown else ""},
    )


def echo_command(args, ctx):
    return CommandResult(command="echo", summary=" ".join(args))


def date_command(args: Sequence[str], ctx: CommandContext) -> CommandResult:
    """The owner's clock next to the visitor's, and how far apart they are."""
    reference = wall_clock(ctx.now, ctx.clock.reference_timezone)
    local = wall_clock(ctx.now, ctx.local_timezone)
    delta = compute_time_delta(local, reference)

    if delta.same_clock:
        relation = "We're on the same clock!"
    elif delta.minutes > 0:
        relation = f"My clock is {delta.message} of yours."
    else:
        relation = f"My clock is {delta.message} yours."

    label = ctx.clock.reference_label
    return CommandResult(
        command="date",
        summary=(
            f"It's currently {format_clock(reference)} for me in {label}.\n"
            f"Your time: {format_clock(local)}\n"
            f"{relation}"
        ),
        details={
            "reference_time": reference.isoformat(),
            "local_time": local.isoformat(),
            "offset_minutes": delta.minutes,
            "message": delta.message,
        },
    )


def welcome_command(args: Sequence[str], ctx: CommandContext) -> CommandResult:
    profile = ctx.profile
    status = ctx.presence.online_status.label if ctx.presence else "Loading..."
    return CommandResult(
        command="welcome",
        summary=(
            f"Welcome to {profile.owner}'s terminal!\n"
            "Type 'help' to see available commands.\n"
            f"My current status is {status} on Discord.\n"
            f"Contact: {profile.contact_email} or @{profile.discord_handle} on Discord."
        ),
        details={"status": status},
    )


async def weather_command(args: Sequence[str], ctx: CommandContext) -> CommandResult:
    if ctx.weather is None:
        return CommandResult(
            command="weather", summary="",
            error="Weather lookup is not configured.",
        )

    city = " ".join(args) or ctx.weather.default_city
    try:
        report = await ctx.weather.fetch(city)
    except ExternalDataError:
        return CommandResult(
            command="weather", summary="",
            error=f"Error: Unable to fetch weather data for {city}.",
        )
    return CommandResult(command="weather", summary=report.format_summary(), details=report.to_dict())


BUILTIN_COMMANDS = (
    ("help", "Get a list of all available commands", help_command),
    ("about", "About me", about_command),
    ("skills", "Check out the skills I have", skills_command),
    ("projects", "Some of my programming projects", projects_command),
    ("socials", "My social networks", socials_command),
    ("clear", "Clear the terminal", clear_command),
    ("theme", "Change terminal theme (light/dark)", theme_command),
    ("music", "Display currently playing music", music_command),
    ("ascii", "Toggle ASCII art", ascii_command),
    ("echo", "Echo a message", echo_command),
    ("date", "Display current date and time", date_command),
    ("welcome", "Display welcome message", welcome_command),
    ("weather", "Get current weather information", weather_command),
)


def register_builtins(registry: CommandRegistry) -> None:
    for name, description, handler in BUILTIN_COMMANDS:
        registry.register(name, description, handler)
    for alias, canonical in BUILTIN_ALIASES.items():
        registry.add_alias(alias, canonical)
