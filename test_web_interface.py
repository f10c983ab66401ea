"""
Web interface tests through FastAPI's TestClient

The presence feed and the GitHub/OpenWeather clients are left out
(with_network=False); presence state is fed straight into the reconciler.

Run with:  python -m pytest test_web_interface.py -v
"""

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

import web_interface
from config_manager import TerminalConfig
from terminal_commands.builtins import BUILTIN_COMMANDS


def presence_frame(status="online", song=None):
    payload = {"discord_status": status, "activities": []}
    if song:
        payload["spotify"] = {"song": song, "artist": "Band", "track_id": "abc123"}
    return {"op": 0, "t": "INIT_STATE", "d": payload}


@pytest.fixture
def server():
    config = TerminalConfig()
    config.presence.enabled = False
    interface = web_interface.initialize_web_interface(config, with_network=False)
    with TestClient(web_interface.app) as client:
        yield client, interface
    web_interface.web_interface = None


@contextmanager
def session(client):
    """Open the socket and consume the initial status and greeting"""
    with client.websocket_connect("/ws") as ws:
        status = ws.receive_json()
        greeting = ws.receive_json()
        yield ws, status, greeting


def submit(ws, line):
    ws.send_json({"action": "submit", "data": {"line": line}})


class TestRestApi:
    """Plain HTTP endpoints"""

    def test_index_page(self, server):
        client, _ = server
        response = client.get("/")
        assert response.status_code == 200
        assert "TigerLake Terminal" in response.text

    def test_status(self, server):
        client, _ = server
        data = client.get("/api/status").json()
        assert data["presence"]["snapshot"] is None
        assert data["presence"]["feed"]["state"] == "disconnected"
        assert data["reference_timezone"] == "Europe/London"
        assert data["connected_clients"] == 0
        assert data["repositories"] == 0

    def test_status_reports_snapshot(self, server):
        client, interface = server
        interface.reconciler.begin_connect()
        interface.reconciler.connection_opened()
        interface.reconciler.receive(presence_frame(song="Song"))

        data = client.get("/api/status").json()
        assert data["presence"]["snapshot"]["online_status"] == "online"
        assert data["presence"]["snapshot"]["track"]["title"] == "Song"

    def test_commands(self, server):
        client, _ = server
        commands = client.get("/api/commands").json()["commands"]
        assert [c["name"] for c in commands] == [name for name, _, _ in BUILTIN_COMMANDS]
        assert commands[0]["description"] == "Get a list of all available commands"

    def test_status_without_interface(self):
        web_interface.web_interface = None
        with TestClient(web_interface.app) as client:
            assert client.get("/api/status").status_code == 503


class TestWebSocketSession:
    """One terminal session over /ws"""

    def test_initial_status_and_greeting(self, server):
        client, _ = server
        with session(client) as (ws, status, greeting):
            assert status["type"] == "initial_status"
            assert status["data"]["prompt"] == "visitor@tigerlake.xyz:~$"
            assert status["data"]["theme"] == "dark"
            assert "( o.o )" in status["data"]["banner"]

            assert greeting["type"] == "transcript_entry"
            assert greeting["data"]["command"] == "welcome"
            assert "Loading..." in greeting["data"]["text"]

    def test_greeting_uses_cached_presence(self, server):
        client, interface = server
        interface.reconciler.begin_connect()
        interface.reconciler.connection_opened()
        interface.reconciler.receive(presence_frame(status="dnd"))

        with session(client) as (ws, status, greeting):
            assert status["data"]["presence"]["snapshot"]["status_label"] == "Do Not Disturb"
            assert "My current status is Do Not Disturb on Discord." in greeting["data"]["text"]

    def test_submit_echo(self, server):
        client, _ = server
        with session(client) as (ws, _, _):
            submit(ws, "echo Hello World")
            echoed = ws.receive_json()
            output = ws.receive_json()
            assert echoed["data"]["kind"] == "input"
            assert echoed["data"]["text"] == "echo Hello World"
            assert output["data"]["kind"] == "output"
            assert output["data"]["text"] == "Hello World"

    def test_unknown_command(self, server):
        client, _ = server
        with session(client) as (ws, _, _):
            submit(ws, "xyz123")
            ws.receive_json()
            error = ws.receive_json()
            assert error["data"]["kind"] == "error"
            assert error["data"]["text"] == "Command not found: xyz123. Type 'help' for a list of commands."

    def test_theme_change_is_pushed(self, server):
        client, _ = server
        with session(client) as (ws, _, _):
            submit(ws, "theme light")
            assert ws.receive_json()["data"]["kind"] == "input"
            changed = ws.receive_json()
            output = ws.receive_json()
            assert changed == {"type": "theme_changed", "data": {"theme": "light"}}
            assert output["data"]["text"] == "Theme set to light."

    def test_clear(self, server):
        client, _ = server
        with session(client) as (ws, _, _):
            submit(ws, "clear")
            assert ws.receive_json()["type"] == "transcript_entry"
            assert ws.receive_json()["type"] == "transcript_cleared"

            ws.send_json({"action": "get_transcript"})
            transcript = ws.receive_json()
            assert transcript == {"type": "transcript", "data": []}

    def test_history_navigation(self, server):
        client, _ = server
        with session(client) as (ws, _, _):
            submit(ws, "echo one")
            ws.receive_json()
            ws.receive_json()

            ws.send_json({"action": "navigate_history", "data": {"direction": "older"}})
            line = ws.receive_json()
            assert line["type"] == "history_line"
            assert line["data"]["line"] == "echo one"

            ws.send_json({"action": "navigate_history", "data": {"direction": "newer"}})
            assert ws.receive_json()["data"]["line"] == ""

            ws.send_json({"action": "navigate_history", "data": {"direction": "sideways"}})
            assert ws.receive_json()["type"] == "error"

    def test_set_timezone(self, server):
        client, _ = server
        with session(client) as (ws, _, _):
            ws.send_json({"action": "set_timezone", "data": {"timezone": "Not/AZone"}})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert "Not/AZone" in error["message"]

            ws.send_json({"action": "set_timezone", "data": {"timezone": "Europe/London"}})
            submit(ws, "date")
            ws.receive_json()
            output = ws.receive_json()
            assert output["data"]["text"].endswith("We're on the same clock!")

    def test_bad_messages(self, server):
        client, _ = server
        with session(client) as (ws, _, _):
            ws.send_text("not json")
            assert ws.receive_json()["message"] == "Invalid JSON received"

            ws.send_json(["not", "an", "object"])
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"action": "launch_rockets"})
            assert ws.receive_json()["message"] == "Unknown action: launch_rockets"

    def test_sessions_are_independent(self, server):
        client, interface = server
        with session(client) as (first, _, _), session(client) as (second, _, _):
            assert len(interface.clients) == 2
            submit(first, "echo only first")
            first.receive_json()
            first.receive_json()

            second.send_json({"action": "get_transcript"})
            transcript = second.receive_json()["data"]
            assert [entry["command"] for entry in transcript] == ["welcome"]
