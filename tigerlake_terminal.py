#!/usr/bin/env python3
"""
TigerLake Terminal
- Interactive command shell for the tigerlake.xyz page
- Live Discord/Spotify presence over the Lanyard websocket feed
- Top GitHub repositories and OpenWeather lookups
- Local terminal session or FastAPI web interface
- Configuration files in YAML

Keyboard → stdin reader thread → asyncio.Queue → DispatchEngine.submit() → Transcript → stdout
Lanyard feed → PresenceFeedClient → PresenceReconciler.snapshot → read by commands

Class Organization

TerminalShell - Local terminal host: one session, one presence feed

Entry points: main(argv) picks the terminal or the web interface.
"""

import sys
import asyncio
import logging
import threading
from typing import Optional

from config_manager import TerminalConfig, ConsoleConfig, setup_configuration
from external_data import GitHubClient, RepositoryCache, WeatherClient
from presence_feed import PresenceFeedClient, PresenceReconciler
from terminal_commands import registry as default_registry
from terminal_commands.builtins import BANNER
from terminal_commands.context import SessionState
from terminal_commands.engine import DispatchEngine
from terminal_commands.transcript import INPUT, ERROR
from web_interface import initialize_web_interface, run_web_server

CLEAR_SCREEN = "\033[2J\033[H"
EXIT_WORDS = ("exit", "quit")

# Fast commands finish before the next prompt; slower ones keep running
PROMPT_GRACE_SECONDS = 2.0


def setup_logging(console: ConsoleConfig):
	"""Configure root logging from the console section"""
	handlers = [logging.StreamHandler()]
	if console.log_file:
		handlers.append(logging.FileHandler(console.log_file, encoding='utf-8'))

	logging.basicConfig(
		level=console.log_level,
		format='%(asctime)s %(levelname)s %(name)s: %(message)s',
		handlers=handlers,
		force=True
	)


class TerminalShell:
	"""Local terminal host for one visitor"""

	def __init__(self, config: Optional[TerminalConfig] = None,
				 feed_client: Optional[PresenceFeedClient] = None,
				 repository_cache: Optional[RepositoryCache] = None,
				 weather: Optional[WeatherClient] = None,
				 registry=None, write=None):
		self.config = config or TerminalConfig()
		self.feed_client = feed_client
		self.reconciler = (
			feed_client.reconciler if feed_client
			else PresenceReconciler(self.config.presence.subscribe_to_id)
		)
		self.repository_cache = repository_cache or RepositoryCache()
		self.write = write or (lambda text: print(text, flush=True))
		self.running = False
		self.pending = set()

		self.logger = logging.getLogger(__name__)

		session = SessionState(
			theme=self.config.ui.default_theme,
			ascii_enabled=self.config.ui.show_ascii,
		)
		self.engine = DispatchEngine(
			registry or default_registry,
			session,
			presence=lambda: self.reconciler.snapshot,
			repositories=lambda: self.repository_cache.repositories,
			weather=weather,
			profile=self.config.site,
			clock_config=self.config.clock,
			on_ascii_toggle=self._on_ascii_toggle,
		)
		session.transcript.add_listener(self._render)

	@classmethod
	def from_config(cls, config: TerminalConfig) -> 'TerminalShell':
		feed_client = PresenceFeedClient.from_config(config.presence) if config.presence.enabled else None
		client = GitHubClient.from_config(config) if config.github.enabled else None
		return cls(
			config,
			feed_client=feed_client,
			repository_cache=RepositoryCache(client),
			weather=WeatherClient.from_config(config.weather),
		)

	def _render(self, event, entry):
		"""Transcript listener - input is already on screen, so skip its echo"""
		if event == "clear":
			self.write(CLEAR_SCREEN)
		elif entry.kind == ERROR:
			self.write(f"✗ {entry.text}")
		elif entry.kind != INPUT:
			self.write(entry.text)

	def _on_ascii_toggle(self, shown: bool):
		if shown:
			self.write(BANNER)

	def _show_prompt(self):
		print(f"{self.engine.prompt} ", end='', flush=True)

	def _start_reader(self, queue: asyncio.Queue):
		"""Read stdin lines on a daemon thread; None marks end of input"""
		loop = asyncio.get_running_loop()

		def read_lines():
			while True:
				line = sys.stdin.readline()
				if not line:
					loop.call_soon_threadsafe(queue.put_nowait, None)
					return
				loop.call_soon_threadsafe(queue.put_nowait, line)

		threading.Thread(target=read_lines, daemon=True, name="stdin-reader").start()

	async def submit(self, line: str):
		"""Run one line as its own task; wait briefly so quick output precedes the prompt"""
		task = asyncio.create_task(self.engine.submit(line))
		self.pending.add(task)
		task.add_done_callback(self.pending.discard)
		await asyncio.wait({task}, timeout=PROMPT_GRACE_SECONDS)
		return task

	async def run(self, lines: Optional[asyncio.Queue] = None):
		"""Main loop until exit/quit or end of input"""
		self.running = True
		if self.feed_client:
			await self.feed_client.start()
		refresh = asyncio.create_task(self.repository_cache.refresh())

		if lines is None:
			lines = asyncio.Queue()
			self._start_reader(lines)

		try:
			if self.engine.session.ascii_enabled:
				self.write(BANNER)
			await self.engine.greet()

			while self.running:
				self._show_prompt()
				line = await lines.get()
				if line is None:
					break
				if line.strip().lower() in EXIT_WORDS:
					break
				await self.submit(line)
		finally:
			self.running = False
			await self.stop(refresh)

	async def stop(self, *extra_tasks):
		for task in list(self.pending) + list(extra_tasks):
			if not task.done():
				task.cancel()
		if self.feed_client:
			await self.feed_client.stop()
		self.logger.debug("Terminal session ended")


def main(argv=None) -> int:
	config, should_exit, config_manager = setup_configuration(argv)

	if should_exit:
		return 0 if config is None else 1

	setup_logging(config.console)

	if not config.console.quiet:
		print("-=" * 30)
		print(f"{config.site.owner} Terminal")
		print("-=" * 30)

	try:
		if config.ui.web_interface_enabled:
			print("🌐 Starting in web interface mode ...")
			initialize_web_interface(config)
			run_web_server(config)
		else:
			shell = TerminalShell.from_config(config)
			asyncio.run(shell.run())
	except KeyboardInterrupt:
		print("\n🛑 Shutting down...")
	except Exception as e:
		logging.getLogger(__name__).exception(f"✗ Error: {e}")
		return 1

	print("Thank you for visiting!")
	return 0


if __name__ == "__main__":
	sys.exit(main())
