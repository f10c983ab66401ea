"""
Terminal host tests: the REPL loop driven from a prepared line queue

Run with:  python -m pytest test_tigerlake_terminal.py -v
"""

import asyncio

from config_manager import TerminalConfig
from tigerlake_terminal import CLEAR_SCREEN, TerminalShell, main
from terminal_commands.builtins import BANNER


def run_shell(lines, **config_changes):
    config = TerminalConfig()
    config.presence.enabled = False
    for section, values in config_changes.items():
        for key, value in values.items():
            setattr(getattr(config, section), key, value)

    written = []
    shell = TerminalShell(config, write=written.append)

    async def scenario():
        queue = asyncio.Queue()
        for line in lines:
            queue.put_nowait(line)
        await shell.run(queue)

    asyncio.run(scenario())
    return shell, written


class TestTerminalShell:
    """Local REPL behaviour"""

    def test_banner_and_greeting(self):
        shell, written = run_shell(["quit\n"])
        assert written[0] == BANNER
        assert written[1].startswith("Welcome to TigerLake's terminal!")

    def test_no_banner_when_ascii_off(self):
        shell, written = run_shell(["exit\n"], ui={"show_ascii": False})
        assert BANNER not in written

    def test_commands_print_output_without_echo(self):
        shell, written = run_shell(["echo hi there\n", "quit\n"])
        assert written[-1] == "hi there"
        assert "echo hi there" not in written

    def test_errors_are_marked(self):
        shell, written = run_shell(["xyz\n", "quit\n"])
        assert written[-1] == "✗ Command not found: xyz. Type 'help' for a list of commands."

    def test_clear_clears_screen(self):
        shell, written = run_shell(["clear\n", "quit\n"])
        assert written[-1] == CLEAR_SCREEN

    def test_end_of_input_stops(self):
        shell, written = run_shell(["echo last\n", None])
        assert written[-1] == "last"
        assert not shell.running

    def test_exit_words_are_not_commands(self):
        shell, written = run_shell(["QUIT\n"])
        assert len(shell.engine.session.history) == 0

    def test_ascii_toggle_reprints_banner(self):
        shell, written = run_shell(["ascii\n", "ascii\n", "quit\n"])
        assert written[-2:] == [BANNER, "ASCII art shown"]


class TestMain:
    """Entry point exit codes"""

    def test_create_config_exits_cleanly(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main(["--create-config", "sample.yaml"]) == 0
        assert (tmp_path / "sample.yaml").exists()

    def test_invalid_config_exits_with_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main(["--reference-timezone", "Nowhere/Land"]) == 1
