"""
Tests for the TigerLake command registry, built-in handlers and time helpers.

Run with:  python -m pytest terminal_commands/test_commands.py -v
"""

from datetime import datetime, timezone

import pytest

from config_manager import ClockConfig, SiteConfig
from external_data import ExternalDataError, Repository, WeatherReport
from presence_feed import OnlineStatus, PresenceSnapshot, Track
from terminal_commands import build_default_registry, registry as default_registry
from terminal_commands.builtins import (
    BANNER,
    BUILTIN_ALIASES,
    BUILTIN_COMMANDS,
    date_command,
    echo_command,
    help_command,
    music_command,
    projects_command,
    theme_command,
    weather_command,
    welcome_command,
)
from terminal_commands.context import CONTEXT_VERSION, CommandContext
from terminal_commands.dispatcher import (
    CommandRegistry,
    CommandResult,
    DuplicateCommandError,
    UnknownCommandError,
)
from terminal_commands.history import Direction, HistoryNavigator
from terminal_commands.timekeeping import (
    compute_time_delta,
    format_clock,
    playback_progress,
    wall_clock,
)


SUMMER_NOON_UTC = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)


def make_context(**overrides):
    """A CommandContext with inert hooks; keyword arguments replace fields."""
    calls = overrides.pop("calls", [])
    fields = dict(
        invoked_as="test",
        presence=None,
        progress=None,
        repositories=(),
        commands=(("help", "Get a list of all available commands"), ("echo", "Echo a message")),
        history=(),
        theme="dark",
        ascii_enabled=True,
        profile=SiteConfig(),
        clock=ClockConfig(),
        local_timezone="Europe/London",
        now=SUMMER_NOON_UTC,
        weather=None,
        clear_transcript=lambda: calls.append("clear"),
        set_theme=lambda theme: calls.append(("theme", theme)),
        toggle_ascii=lambda: calls.append("ascii") or False,
    )
    fields.update(overrides)
    return CommandContext(**fields)


def noop(args, ctx):
    return CommandResult(command="noop", summary="")


# ============================================================
# CommandRegistry
# ============================================================

class TestCommandRegistry:
    """Tests for registration, aliases and resolution."""

    def test_register_and_resolve(self):
        reg = CommandRegistry()
        command = reg.register("echo", "Echo a message", noop)
        assert reg.resolve("echo") is command
        assert command.description == "Echo a message"

    def test_resolution_is_case_insensitive(self):
        reg = CommandRegistry()
        command = reg.register("Help", "List commands", noop)
        assert command.name == "help"
        assert reg.resolve("HELP") is command
        assert reg.resolve("hElP") is command

    def test_unknown_token_resolves_to_none(self):
        reg = CommandRegistry()
        reg.register("help", "List commands", noop)
        assert reg.resolve("xyz123") is None
        assert "xyz123" not in reg

    def test_alias_resolves_to_same_command(self):
        reg = CommandRegistry()
        music = reg.register("music", "Now playing", noop)
        reg.add_alias("np", "music")
        assert reg.resolve("np") is music
        assert reg.resolve("NP") is music

    def test_duplicate_command_raises(self):
        reg = CommandRegistry()
        reg.register("echo", "Echo", noop)
        with pytest.raises(DuplicateCommandError, match="collision"):
            reg.register("ECHO", "Echo again", noop)

    def test_alias_colliding_with_command_raises(self):
        reg = CommandRegistry()
        reg.register("help", "List", noop)
        reg.register("about", "About", noop)
        with pytest.raises(DuplicateCommandError):
            reg.add_alias("about", "help")

    def test_command_colliding_with_alias_raises(self):
        reg = CommandRegistry()
        reg.register("help", "List", noop)
        reg.add_alias("ls", "help")
        with pytest.raises(DuplicateCommandError, match="alias"):
            reg.register("ls", "Directory listing", noop)

    def test_duplicate_alias_raises(self):
        reg = CommandRegistry()
        reg.register("help", "List", noop)
        reg.register("about", "About", noop)
        reg.add_alias("h", "help")
        with pytest.raises(DuplicateCommandError):
            reg.add_alias("h", "about")

    def test_alias_must_target_canonical_command(self):
        reg = CommandRegistry()
        reg.register("help", "List", noop)
        reg.add_alias("ls", "help")
        with pytest.raises(UnknownCommandError):
            reg.add_alias("dir", "ls")
        with pytest.raises(UnknownCommandError):
            reg.add_alias("x", "missing")

    def test_duplicate_errors_are_value_errors(self):
        assert issubclass(DuplicateCommandError, ValueError)
        assert issubclass(UnknownCommandError, ValueError)

    def test_list_visible_in_registration_order_without_aliases(self):
        reg = CommandRegistry()
        reg.register("zeta", "Z", noop)
        reg.register("alpha", "A", noop)
        reg.add_alias("a", "alpha")
        assert [c.name for c in reg.list_visible()] == ["zeta", "alpha"]
        assert len(reg) == 2

    def test_frozen_registry_rejects_writes(self):
        reg = CommandRegistry()
        reg.register("help", "List", noop)
        reg.freeze()
        with pytest.raises(RuntimeError):
            reg.register("about", "About", noop)
        with pytest.raises(RuntimeError):
            reg.add_alias("ls", "help")
        assert reg.resolve("help") is not None


class TestDefaultRegistry:
    """Tests for the registry built at import time."""

    def test_every_builtin_is_registered_in_order(self):
        names = [c.name for c in default_registry.list_visible()]
        assert names == [name for name, _, _ in BUILTIN_COMMANDS]

    def test_every_alias_resolves_to_its_canonical_command(self):
        for alias, canonical in BUILTIN_ALIASES.items():
            assert default_registry.resolve(alias) is default_registry.resolve(canonical)

    def test_default_registry_is_frozen(self):
        with pytest.raises(RuntimeError):
            default_registry.register("extra", "Extra", noop)

    def test_build_default_registry_returns_fresh_registry(self):
        assert build_default_registry() is not default_registry


# ============================================================
# CommandResult
# ============================================================

class TestCommandResult:
    """Tests for the CommandResult container."""

    def test_success_text_is_summary(self):
        result = CommandResult(command="echo", summary="hi")
        assert not result.is_error
        assert result.text == "hi"

    def test_error_text_is_error(self):
        result = CommandResult(command="weather", summary="ignored", error="boom")
        assert result.is_error
        assert result.text == "boom"

    def test_details_default_empty(self):
        assert CommandResult(command="x", summary="").details == {}


# ============================================================
# Built-in handlers
# ============================================================

class TestBuiltins:
    """Direct handler calls against a hand-built context."""

    def test_context_version(self):
        assert make_context().version == CONTEXT_VERSION == 1

    def test_help_lists_commands(self):
        result = help_command([], make_context())
        lines = result.summary.splitlines()
        assert lines[0] == "Available commands:"
        assert lines[1] == "help: Get a list of all available commands"
        assert lines[2] == "echo: Echo a message"

    def test_echo_joins_args(self):
        result = echo_command(["Hello", "World"], make_context())
        assert result.summary == "Hello World"

    def test_echo_without_args_is_empty(self):
        assert echo_command([], make_context()).summary == ""

    def test_theme_light(self):
        calls = []
        result = theme_command(["light"], make_context(calls=calls))
        assert result.summary == "Theme set to light."
        assert calls == [("theme", "light")]

    def test_theme_anything_else_is_dark(self):
        calls = []
        result = theme_command(["purple"], make_context(calls=calls))
        assert result.summary == "Theme set to dark."
        assert calls == [("theme", "dark")]

    def test_theme_alias_names_the_theme(self):
        calls = []
        theme_command([], make_context(invoked_as="light", calls=calls))
        assert calls == [("theme", "light")]

    def test_music_without_track(self):
        result = music_command([], make_context())
        assert result.summary == "No music is currently playing."

    def test_music_with_track_and_progress(self):
        snapshot = PresenceSnapshot(
            online_status=OnlineStatus.ONLINE,
            track=Track(title="Song", artist="Band", external_link_id="abc123", album="LP"),
        )
        result = music_command([], make_context(presence=snapshot, progress=42.4))
        lines = result.summary.splitlines()
        assert lines[0] == "Now playing: Song - Band"
        assert "Album: LP" in lines
        assert "Listen: https://open.spotify.com/track/abc123" in lines
        assert "Progress: 42%" in lines
        assert result.details["progress"] == 42.4

    def test_music_without_progress_omits_bar(self):
        snapshot = PresenceSnapshot(
            online_status=OnlineStatus.ONLINE,
            track=Track(title="Song", artist="Band"),
        )
        result = music_command([], make_context(presence=snapshot))
        assert "Progress" not in result.summary

    def test_projects_empty(self):
        result = projects_command([], make_context())
        assert result.summary == "No repositories to show yet. Try again in a moment."

    def test_projects_lists_repositories(self):
        repos = (
            Repository(id=1, name="site", html_url="https://github.com/trixzyy/site",
                       description="My site", stargazers_count=10, forks_count=2),
        )
        result = projects_command([], make_context(repositories=repos))
        assert result.summary.startswith("My top GitHub repositories:")
        assert "site" in result.summary
        assert result.details["repositories"][0]["name"] == "site"

    def test_welcome_before_presence(self):
        result = welcome_command([], make_context())
        assert "My current status is Loading... on Discord." in result.summary
        assert result.summary.startswith("Welcome to TigerLake's terminal!")

    def test_welcome_with_presence(self):
        snapshot = PresenceSnapshot(online_status=OnlineStatus.DND)
        result = welcome_command([], make_context(presence=snapshot))
        assert "My current status is Do Not Disturb on Discord." in result.summary

    def test_date_same_clock(self):
        result = date_command([], make_context(local_timezone="Europe/London"))
        assert "It's currently 01/07/2024, 13:00:00 for me in the UK." in result.summary
        assert result.summary.endswith("We're on the same clock!")
        assert result.details["offset_minutes"] == 0

    def test_date_different_zone(self):
        result = date_command([], make_context(local_timezone="America/New_York"))
        assert "Your time: 01/07/2024, 08:00:00" in result.summary
        assert result.summary.endswith("My clock is 5 hours ahead of yours.")

    def test_date_half_hour_zone(self):
        result = date_command([], make_context(local_timezone="Asia/Kolkata"))
        assert result.summary.endswith("My clock is 4 hours and 30 minutes behind yours.")

    def test_banner_contains_art(self):
        assert "( o.o )" in BANNER


class FakeWeather:
    default_city = "London"

    def __init__(self, report=None, error=None):
        self.report = report
        self.error = error
        self.cities = []

    async def fetch(self, city):
        self.cities.append(city)
        if self.error:
            raise self.error
        return self.report


class TestWeatherCommand:
    """The asynchronous weather handler."""

    def run(self, args, weather):
        import asyncio
        return asyncio.run(weather_command(args, make_context(weather=weather)))

    def test_not_configured(self):
        result = self.run([], None)
        assert result.error == "Weather lookup is not configured."

    def test_default_city(self):
        report = WeatherReport("London", "GB", 18.4, 17.0, "light rain", 80, 3.5)
        weather = FakeWeather(report=report)
        result = self.run([], weather)
        assert weather.cities == ["London"]
        assert result.summary.splitlines()[0] == "Weather in London, GB"
        assert "Temperature: 18°C" in result.summary

    def test_multi_word_city(self):
        report = WeatherReport("New York", "US", 25.0, 26.0, "clear sky", 40, 1.0)
        weather = FakeWeather(report=report)
        self.run(["New", "York"], weather)
        assert weather.cities == ["New York"]

    def test_fetch_failure(self):
        result = self.run(["Atlantis"], FakeWeather(error=ExternalDataError("404")))
        assert result.error == "Error: Unable to fetch weather data for Atlantis."


# ============================================================
# HistoryNavigator
# ============================================================

class TestHistoryNavigator:
    """Arrow-key browsing over submitted lines."""

    def make(self, *lines):
        history = HistoryNavigator()
        for line in lines:
            history.record_submission(line)
        return history

    def test_empty_history_returns_blank(self):
        history = HistoryNavigator()
        assert history.navigate(Direction.OLDER) == ""
        assert history.navigate(Direction.NEWER) == ""
        assert history.cursor == -1

    def test_older_walks_back(self):
        history = self.make("a", "b", "c")
        assert history.navigate(Direction.OLDER) == "c"
        assert history.navigate(Direction.OLDER) == "b"
        assert history.navigate(Direction.OLDER) == "a"

    def test_older_stops_at_oldest(self):
        history = self.make("a", "b")
        history.navigate(Direction.OLDER)
        history.navigate(Direction.OLDER)
        assert history.navigate(Direction.OLDER) == "a"
        assert history.cursor == 1

    def test_newer_returns_to_blank(self):
        history = self.make("a", "b")
        history.navigate(Direction.OLDER)
        history.navigate(Direction.OLDER)
        assert history.navigate(Direction.NEWER) == "b"
        assert history.navigate(Direction.NEWER) == ""
        assert history.navigate(Direction.NEWER) == ""
        assert history.cursor == -1

    def test_submission_resets_cursor(self):
        history = self.make("a", "b")
        history.navigate(Direction.OLDER)
        history.record_submission("c")
        assert history.cursor == -1
        assert history.navigate(Direction.OLDER) == "c"

    def test_string_directions(self):
        history = self.make("a")
        assert history.navigate("older") == "a"
        assert history.navigate("newer") == ""

    def test_unknown_direction_raises(self):
        with pytest.raises(ValueError):
            HistoryNavigator().navigate("sideways")


# ============================================================
# Time helpers
# ============================================================

class TestPlaybackProgress:
    """Track progress percentage."""

    def test_midway(self):
        assert playback_progress(1000, 3000, 2000) == 50.0

    def test_exact_bounds(self):
        assert playback_progress(1000, 3000, 1000) == 0.0
        assert playback_progress(1000, 3000, 3000) == 100.0

    def test_clamped_before_start(self):
        assert playback_progress(1000, 3000, 500) == 0.0

    def test_clamped_after_end(self):
        assert playback_progress(1000, 3000, 9000) == 100.0

    def test_missing_timestamps(self):
        assert playback_progress(None, 3000, 2000) is None
        assert playback_progress(1000, None, 2000) is None

    def test_zero_length_track(self):
        assert playback_progress(3000, 3000, 3000) is None
        assert playback_progress(3000, 1000, 2000) is None


class TestTimeDelta:
    """Wall-clock difference and its message."""

    def test_same_clock(self):
        moment = datetime(2024, 1, 1, 12, 0)
        delta = compute_time_delta(moment, moment)
        assert delta.same_clock
        assert delta.message == "same clock"

    def test_under_a_minute_is_same_clock(self):
        delta = compute_time_delta(datetime(2024, 1, 1, 12, 0, 0), datetime(2024, 1, 1, 12, 0, 45))
        assert delta.same_clock

    def test_ahead_hours_and_minutes(self):
        delta = compute_time_delta(datetime(2024, 1, 1, 12, 0), datetime(2024, 1, 1, 13, 5))
        assert delta.minutes == 65
        assert delta.message == "1 hour and 5 minutes ahead"

    def test_behind_whole_hours(self):
        delta = compute_time_delta(datetime(2024, 1, 1, 12, 0), datetime(2024, 1, 1, 10, 0))
        assert delta.minutes == -120
        assert delta.message == "2 hours behind"

    def test_single_minute(self):
        delta = compute_time_delta(datetime(2024, 1, 1, 12, 0), datetime(2024, 1, 1, 12, 1))
        assert delta.message == "1 minute ahead"

    def test_tzinfo_is_ignored(self):
        local = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        reference = datetime(2024, 1, 1, 12, 30)
        assert compute_time_delta(local, reference).minutes == 30

    def test_wall_clock_in_zone(self):
        london = wall_clock(SUMMER_NOON_UTC, "Europe/London")
        assert format_clock(london) == "01/07/2024, 13:00:00"

    def test_wall_clock_naive_is_utc(self):
        tokyo = wall_clock(datetime(2024, 1, 1, 0, 0), "Asia/Tokyo")
        assert tokyo.hour == 9
