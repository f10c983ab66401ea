#!/usr/bin/env python3
"""
Web Interface for the TigerLake terminal
Serves the terminal page and runs one shell session per websocket client
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.staticfiles import StaticFiles
from fastapi.responses import HTMLResponse
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from config_manager import TerminalConfig
from external_data import GitHubClient, RepositoryCache, WeatherClient
from presence_feed import PresenceFeedClient, PresenceReconciler
from terminal_commands import registry as default_registry
from terminal_commands.builtins import BANNER
from terminal_commands.context import SessionState
from terminal_commands.engine import DispatchEngine
from terminal_commands.timekeeping import now_ms, playback_progress


class ClientSession:
	"""One connected page: its shell engine and outbound message queue"""

	def __init__(self, websocket: WebSocket, engine: DispatchEngine):
		self.websocket = websocket
		self.engine = engine
		self.outbox: asyncio.Queue = asyncio.Queue()
		self.writer_task: Optional[asyncio.Task] = None
		self.pending: set = set()


class TerminalWebInterface:
	"""Bridge between the terminal page and the command engine"""

	def __init__(self, config: Optional[TerminalConfig] = None,
				 feed_client: Optional[PresenceFeedClient] = None,
				 repository_cache: Optional[RepositoryCache] = None,
				 weather: Optional[WeatherClient] = None,
				 registry=None):
		self.config = config or TerminalConfig()
		self.registry = registry or default_registry
		self.feed_client = feed_client
		self.reconciler: PresenceReconciler = (
			feed_client.reconciler if feed_client
			else PresenceReconciler(self.config.presence.subscribe_to_id)
		)
		self.repository_cache = repository_cache or RepositoryCache()
		self.weather = weather
		self.clients: Dict[WebSocket, ClientSession] = {}
		self.started_at = datetime.now()

		self.logger = logging.getLogger(__name__)

		self.reconciler.add_listener(self.on_presence_update)

	async def startup(self):
		"""Open the shared presence feed and load the repository list"""
		if self.feed_client:
			await self.feed_client.start()
		await self.repository_cache.refresh()
		self.logger.info("Web interface started")

	async def shutdown(self):
		"""Close the presence feed and drop every client"""
		if self.feed_client:
			await self.feed_client.stop()
		for client in list(self.clients.values()):
			await self._close_client(client)
		self.logger.info("Web interface stopped")

	def create_engine(self, websocket: WebSocket) -> DispatchEngine:
		session = SessionState(
			theme=self.config.ui.default_theme,
			ascii_enabled=self.config.ui.show_ascii,
		)
		return DispatchEngine(
			self.registry,
			session,
			presence=lambda: self.reconciler.snapshot,
			repositories=lambda: self.repository_cache.repositories,
			weather=self.weather,
			profile=self.config.site,
			clock_config=self.config.clock,
			on_theme_change=lambda theme: self.queue_message(websocket, {
				"type": "theme_changed", "data": {"theme": theme}
			}),
			on_ascii_toggle=lambda shown: self.queue_message(websocket, {
				"type": "ascii_toggled", "data": {"ascii_enabled": shown, "banner": BANNER if shown else ""}
			}),
		)

	async def connect_websocket(self, websocket: WebSocket):
		"""Handle new WebSocket connection"""
		await websocket.accept()

		engine = self.create_engine(websocket)
		client = ClientSession(websocket, engine)
		self.clients[websocket] = client
		client.writer_task = asyncio.create_task(self._writer(client))

		engine.session.transcript.add_listener(
			lambda event, entry: self._on_transcript_event(websocket, event, entry)
		)

		self.queue_message(websocket, {
			"type": "initial_status",
			"data": {
				**self.get_current_status(),
				"prompt": engine.prompt,
				"theme": engine.session.theme,
				"ascii_enabled": engine.session.ascii_enabled,
				"banner": BANNER if engine.session.ascii_enabled else "",
			}
		})
		await engine.greet()

		self.logger.info(f"New WebSocket client connected. Total: {len(self.clients)}")

	async def disconnect_websocket(self, websocket: WebSocket):
		"""Handle WebSocket disconnection"""
		client = self.clients.get(websocket)
		if client:
			await self._close_client(client)
		self.logger.info(f"WebSocket client disconnected. Remaining: {len(self.clients)}")

	async def _close_client(self, client: ClientSession):
		self.clients.pop(client.websocket, None)
		for task in list(client.pending) + [client.writer_task]:
			if task is not None and not task.done():
				task.cancel()

	def _on_transcript_event(self, websocket: WebSocket, event: str, entry):
		if event == "clear":
			self.queue_message(websocket, {"type": "transcript_cleared", "data": {}})
		else:
			self.queue_message(websocket, {"type": "transcript_entry", "data": entry.to_dict()})

	def queue_message(self, websocket: WebSocket, message: Dict):
		"""Queue message for one client; delivered in queue order"""
		client = self.clients.get(websocket)
		if client:
			client.outbox.put_nowait(message)

	async def _writer(self, client: ClientSession):
		while True:
			message = await client.outbox.get()
			await self.send_to_client(client.websocket, message)

	async def send_to_client(self, websocket: WebSocket, message: Dict):
		"""Send message to specific client"""
		try:
			await websocket.send_text(json.dumps(message))
		except Exception as e:
			self.logger.warning(f"Failed to send to client: {e}")

	def broadcast_to_all(self, message: Dict):
		"""Queue message for all connected clients"""
		for websocket in list(self.clients):
			self.queue_message(websocket, message)

	async def handle_client_command(self, websocket: WebSocket, command_data: Dict):
		"""Process commands from the page"""
		client = self.clients.get(websocket)
		if client is None:
			return

		action = command_data.get('action')
		data = command_data.get('data')
		if not isinstance(data, dict):
			data = {}

		if action == 'submit':
			line = str(data.get('line', ''))
			# Each line runs as its own task so a slow command never blocks input
			task = asyncio.create_task(client.engine.submit(line))
			client.pending.add(task)
			task.add_done_callback(client.pending.discard)

		elif action == 'navigate_history':
			try:
				line = client.engine.navigate(data.get('direction', ''))
			except ValueError:
				self.queue_message(websocket, {
					"type": "error",
					"message": f"Unknown history direction: {data.get('direction')}"
				})
				return
			self.queue_message(websocket, {
				"type": "history_line",
				"data": {"line": line, "cursor": client.engine.session.history.cursor}
			})

		elif action == 'set_timezone':
			zone = data.get('timezone')
			try:
				ZoneInfo(zone)
			except (ZoneInfoNotFoundError, ValueError, TypeError):
				self.queue_message(websocket, {"type": "error", "message": f"Unknown timezone: {zone}"})
				return
			client.engine.session.local_timezone = zone

		elif action == 'get_transcript':
			self.queue_message(websocket, {
				"type": "transcript",
				"data": [entry.to_dict() for entry in client.engine.session.transcript]
			})

		else:
			self.logger.warning(f"Unknown action: {action}")
			self.queue_message(websocket, {
				"type": "error",
				"message": f"Unknown action: {action}"
			})

	def on_presence_update(self, previous, current):
		"""Reconciler listener - push the new snapshot to every page"""
		self.broadcast_to_all({
			"type": "presence_update",
			"data": self.get_presence_status()
		})

	def get_presence_status(self) -> Dict[str, Any]:
		snapshot = self.reconciler.snapshot
		progress = None
		if snapshot and snapshot.track:
			progress = playback_progress(snapshot.track.start_timestamp, snapshot.track.end_timestamp, now_ms())
		return {
			"snapshot": snapshot.to_dict() if snapshot else None,
			"progress": progress,
			"feed": self.reconciler.get_stats(),
		}

	def get_current_status(self) -> Dict:
		"""Get current status for the page and the REST API"""
		return {
			"presence": self.get_presence_status(),
			"reference_timezone": self.config.clock.reference_timezone,
			"repositories": len(self.repository_cache.repositories),
			"connected_clients": len(self.clients),
			"uptime_seconds": int((datetime.now() - self.started_at).total_seconds()),
			"timestamp": datetime.now().isoformat(),
		}


# Global web interface instance
web_interface: Optional[TerminalWebInterface] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
	if web_interface:
		await web_interface.startup()
	try:
		yield
	finally:
		if web_interface:
			await web_interface.shutdown()


# FastAPI application setup
app = FastAPI(title="TigerLake Terminal", version="1.0.0", lifespan=lifespan)

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)


def initialize_web_interface(config: Optional[TerminalConfig] = None, with_network: bool = True) -> TerminalWebInterface:
	"""Build the global web interface from configuration"""
	global web_interface
	config = config or TerminalConfig()

	feed_client = None
	repository_cache = RepositoryCache()
	weather = None
	if with_network:
		if config.presence.enabled:
			feed_client = PresenceFeedClient.from_config(config.presence)
		if config.github.enabled:
			repository_cache = RepositoryCache(GitHubClient.from_config(config))
		weather = WeatherClient.from_config(config.weather)

	web_interface = TerminalWebInterface(config, feed_client, repository_cache, weather)
	logging.getLogger(__name__).info("Web interface initialized")
	return web_interface


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
	"""WebSocket endpoint for the terminal page"""
	if not web_interface:
		await websocket.close(code=1011, reason="Terminal not initialized")
		return

	try:
		await web_interface.connect_websocket(websocket)

		while True:
			data = await websocket.receive_text()
			try:
				command = json.loads(data)
			except json.JSONDecodeError:
				web_interface.queue_message(websocket, {
					"type": "error",
					"message": "Invalid JSON received"
				})
				continue
			if not isinstance(command, dict):
				web_interface.queue_message(websocket, {
					"type": "error",
					"message": "Expected a JSON object"
				})
				continue
			await web_interface.handle_client_command(websocket, command)
	except WebSocketDisconnect:
		pass
	except Exception as e:
		logging.getLogger(__name__).error(f"WebSocket error: {e}")
	finally:
		await web_interface.disconnect_websocket(websocket)


STATIC_DIR = Path(__file__).resolve().parent / "static"


@app.get("/")
async def get_index():
	"""Serve the terminal page"""
	index = STATIC_DIR / "index.html"
	if index.exists():
		return HTMLResponse(content=index.read_text(encoding="utf-8"), status_code=200)

	return HTMLResponse(content="""
	<!DOCTYPE html>
	<html>
	<head><title>TigerLake Terminal</title></head>
	<body>
		<h1>TigerLake Terminal</h1>
		<p>Page not found. Expected static/index.html next to web_interface.py</p>
	</body>
	</html>
	""", status_code=200)


@app.get("/api/status")
async def get_status():
	"""Get current status via REST API"""
	if not web_interface:
		raise HTTPException(status_code=503, detail="Terminal not initialized")

	return web_interface.get_current_status()


@app.get("/api/commands")
async def get_commands():
	"""Visible command listing via REST API"""
	if not web_interface:
		raise HTTPException(status_code=503, detail="Terminal not initialized")

	return {
		"commands": [
			{"name": command.name, "description": command.description}
			for command in web_interface.registry.list_visible()
		]
	}


if STATIC_DIR.exists():
	app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


def run_web_server(config: Optional[TerminalConfig] = None):
	"""Run the web server (blocks until Ctrl+C)"""
	config = config or TerminalConfig()
	if web_interface is None:
		initialize_web_interface(config)

	host = config.ui.web_interface_host
	port = config.ui.web_interface_port
	print(f"🌐 Starting TigerLake Terminal on http://{host}:{port}")
	print(f"📡 WebSocket endpoint: ws://{host}:{port}/ws")

	log_level = "debug" if config.console.verbose else ("warning" if config.console.quiet else "info")

	uvicorn.run(
		app,
		host=host,
		port=port,
		log_level=log_level,
		access_log=not config.console.quiet
	)


if __name__ == "__main__":
	run_web_server()
