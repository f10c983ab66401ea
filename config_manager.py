#!/usr/bin/env python3
"""
Configuration system for the TigerLake terminal
Supports YAML files, CLI overrides, and programmatic access for the web host
"""

import yaml
import argparse
import os
import sys
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging


VALID_THEMES = ("light", "dark")


@dataclass
class SiteConfig:
	"""Who the terminal belongs to - shown by welcome, socials and the prompt"""
	owner: str = "TigerLake"
	host: str = "tigerlake.xyz"
	prompt_user: str = "visitor"
	contact_email: str = "zac@tigerlake.xyz"
	github_user: str = "trixzyy"
	twitter_handle: str = "trixzydev"
	discord_handle: str = "trixzy"
	discord_id: str = "992171799536218142"

	@property
	def prompt(self) -> str:
		return f"{self.prompt_user}@{self.host}:~$"

	def to_dict(self) -> Dict[str, Any]:
		"""Convert to dictionary for YAML serialization"""
		return {
			'owner': self.owner,
			'host': self.host,
			'prompt_user': self.prompt_user,
			'contact_email': self.contact_email,
			'github_user': self.github_user,
			'twitter_handle': self.twitter_handle,
			'discord_handle': self.discord_handle,
			'discord_id': self.discord_id
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'SiteConfig':
		"""Create from dictionary (YAML loading)"""
		defaults = cls()
		return cls(
			owner=data.get('owner', defaults.owner),
			host=data.get('host', defaults.host),
			prompt_user=data.get('prompt_user', defaults.prompt_user),
			contact_email=data.get('contact_email', defaults.contact_email),
			github_user=data.get('github_user', defaults.github_user),
			twitter_handle=data.get('twitter_handle', defaults.twitter_handle),
			discord_handle=data.get('discord_handle', defaults.discord_handle),
			discord_id=str(data.get('discord_id', defaults.discord_id))
		)


@dataclass
class PresenceConfig:
	"""Push feed (Lanyard) subscription settings"""
	enabled: bool = True
	feed_url: str = "wss://api.lanyard.rest/socket"
	subscribe_to_id: str = "992171799536218142"
	initial_backoff_seconds: float = 0.5
	max_backoff_seconds: float = 30.0

	def to_dict(self) -> Dict[str, Any]:
		return {
			'enabled': self.enabled,
			'feed_url': self.feed_url,
			'subscribe_to_id': self.subscribe_to_id,
			'initial_backoff_seconds': self.initial_backoff_seconds,
			'max_backoff_seconds': self.max_backoff_seconds
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'PresenceConfig':
		return cls(
			enabled=data.get('enabled', True),
			feed_url=data.get('feed_url', "wss://api.lanyard.rest/socket"),
			subscribe_to_id=str(data.get('subscribe_to_id', "992171799536218142")),
			initial_backoff_seconds=data.get('initial_backoff_seconds', 0.5),
			max_backoff_seconds=data.get('max_backoff_seconds', 30.0)
		)


@dataclass
class ClockConfig:
	"""Reference clock the date command compares visitors against"""
	reference_timezone: str = "Europe/London"
	reference_label: str = "the UK"

	def to_dict(self) -> Dict[str, Any]:
		return {
			'reference_timezone': self.reference_timezone,
			'reference_label': self.reference_label
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'ClockConfig':
		return cls(
			reference_timezone=data.get('reference_timezone', "Europe/London"),
			reference_label=data.get('reference_label', "the UK")
		)


@dataclass
class GitHubConfig:
	"""Repository listing for the projects command"""
	enabled: bool = True
	api_base: str = "https://api.github.com"
	repository_limit: int = 6
	timeout_seconds: float = 10.0

	def to_dict(self) -> Dict[str, Any]:
		return {
			'enabled': self.enabled,
			'api_base': self.api_base,
			'repository_limit': self.repository_limit,
			'timeout_seconds': self.timeout_seconds
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'GitHubConfig':
		return cls(
			enabled=data.get('enabled', True),
			api_base=data.get('api_base', "https://api.github.com"),
			repository_limit=data.get('repository_limit', 6),
			timeout_seconds=data.get('timeout_seconds', 10.0)
		)


@dataclass
class WeatherConfig:
	"""OpenWeather lookup settings"""
	api_key: str = ""  # falls back to OPENWEATHER_API_KEY
	base_url: str = "https://api.openweathermap.org/data/2.5/weather"
	default_city: str = "London"
	units: str = "metric"
	timeout_seconds: float = 10.0

	@property
	def effective_api_key(self) -> str:
		return self.api_key or os.environ.get("OPENWEATHER_API_KEY", "")

	def to_dict(self) -> Dict[str, Any]:
		return {
			'api_key': self.api_key,
			'base_url': self.base_url,
			'default_city': self.default_city,
			'units': self.units,
			'timeout_seconds': self.timeout_seconds
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'WeatherConfig':
		return cls(
			api_key=data.get('api_key', "") or "",
			base_url=data.get('base_url', "https://api.openweathermap.org/data/2.5/weather"),
			default_city=data.get('default_city', "London"),
			units=data.get('units', "metric"),
			timeout_seconds=data.get('timeout_seconds', 10.0)
		)


@dataclass
class UIConfig:
	"""User Interface configuration"""
	web_interface_enabled: bool = False
	web_interface_port: int = 8000
	web_interface_host: str = "0.0.0.0"
	default_theme: str = "dark"
	show_ascii: bool = True

	def __post_init__(self):
		"""Validate configuration values"""
		if not (1 <= self.web_interface_port <= 65535):
			raise ValueError(f"Invalid port number: {self.web_interface_port}. Must be between 1 and 65535")

	def to_dict(self) -> Dict[str, Any]:
		"""Convert to dictionary for YAML serialization"""
		return {
			'web_interface_enabled': self.web_interface_enabled,
			'web_interface_port': self.web_interface_port,
			'web_interface_host': self.web_interface_host,
			'default_theme': self.default_theme,
			'show_ascii': self.show_ascii
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'UIConfig':
		"""Create from dictionary (YAML loading)"""
		return cls(
			web_interface_enabled=data.get('web_interface_enabled', False),
			web_interface_port=data.get('web_interface_port', 8000),
			web_interface_host=data.get('web_interface_host', '0.0.0.0'),
			default_theme=data.get('default_theme', 'dark'),
			show_ascii=data.get('show_ascii', True)
		)


@dataclass
class ConsoleConfig:
	"""Console messages logging level configuration"""
	verbose: bool = False
	quiet: bool = False
	log_file: Optional[str] = None

	@property
	def log_level(self) -> int:
		if self.verbose:
			return logging.DEBUG
		if self.quiet:
			return logging.WARNING
		return logging.INFO

	def to_dict(self) -> Dict[str, Any]:
		return {
			'verbose': self.verbose,
			'quiet': self.quiet,
			'log_file': self.log_file
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'ConsoleConfig':
		return cls(
			verbose=data.get('verbose', False),
			quiet=data.get('quiet', False),
			log_file=data.get('log_file')
		)


@dataclass
class TerminalConfig:
	"""Complete configuration for the TigerLake terminal"""
	site: SiteConfig = field(default_factory=SiteConfig)
	presence: PresenceConfig = field(default_factory=PresenceConfig)
	clock: ClockConfig = field(default_factory=ClockConfig)
	github: GitHubConfig = field(default_factory=GitHubConfig)
	weather: WeatherConfig = field(default_factory=WeatherConfig)
	ui: UIConfig = field(default_factory=UIConfig)
	console: ConsoleConfig = field(default_factory=ConsoleConfig)

	# Metadata
	config_version: str = "1.0"
	description: str = "TigerLake Terminal Configuration"

	def to_dict(self) -> Dict[str, Any]:
		"""Convert to dictionary for YAML serialization"""
		return {
			'config_version': self.config_version,
			'description': self.description,
			'site': self.site.to_dict(),
			'presence': self.presence.to_dict(),
			'clock': self.clock.to_dict(),
			'github': self.github.to_dict(),
			'weather': self.weather.to_dict(),
			'ui': self.ui.to_dict(),
			'console': self.console.to_dict(),
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'TerminalConfig':
		"""Create from dictionary (YAML loading), missing sections keep defaults"""
		config = cls()

		if 'config_version' in data:
			config.config_version = str(data['config_version'])
		if 'description' in data:
			config.description = data['description']

		if isinstance(data.get('site'), dict):
			config.site = SiteConfig.from_dict(data['site'])
		if isinstance(data.get('presence'), dict):
			config.presence = PresenceConfig.from_dict(data['presence'])
		if isinstance(data.get('clock'), dict):
			config.clock = ClockConfig.from_dict(data['clock'])
		if isinstance(data.get('github'), dict):
			config.github = GitHubConfig.from_dict(data['github'])
		if isinstance(data.get('weather'), dict):
			config.weather = WeatherConfig.from_dict(data['weather'])
		if isinstance(data.get('ui'), dict):
			config.ui = UIConfig.from_dict(data['ui'])
		if isinstance(data.get('console'), dict):
			config.console = ConsoleConfig.from_dict(data['console'])

		return config


class ConfigurationManager:
	"""
	Manages configuration loading, merging, and validation
	"""

	def __init__(self, config_file: str = "tigerlake_terminal.yaml"):
		self.config_file = config_file
		self.config: Optional[TerminalConfig] = None
		self.config_file_path: Optional[Path] = None

		self.logger = logging.getLogger(__name__)

		# Standard config file locations (in order of preference)
		self.config_search_paths = [
			Path.cwd() / "tigerlake_terminal.yaml",  # Current directory
			Path.cwd() / "config" / "tigerlake_terminal.yaml",  # Config subdirectory
			Path.home() / ".config" / "tigerlake_terminal" / "config.yaml",  # User config
			Path("/etc/tigerlake_terminal/config.yaml"),  # System config (Linux)
		]

	def load_config(self, config_file: Optional[str] = None) -> TerminalConfig:
		"""
		Load configuration from file with fallback chain

		Args:
			config_file: Specific config file path, or None for auto-discovery

		Returns:
			Loaded configuration object (defaults when nothing usable is found)
		"""
		if config_file:
			config_path = Path(config_file)
			if config_path.exists():
				self.config = self._load_yaml_file(config_path)
				self.config_file_path = config_path
				self.logger.info(f"Loaded config from: {config_path}")
			else:
				self.logger.warning(f"Config file not found: {config_path}")
				self.logger.info("Using default configuration")
				self.config = TerminalConfig()
		else:
			for path in self.config_search_paths:
				if path.exists():
					self.config = self._load_yaml_file(path)
					self.config_file_path = path
					self.logger.info(f"Auto-discovered config: {path}")
					break
			else:
				self.logger.info("No config file found, using defaults")
				self.config = TerminalConfig()

		return self.config

	def _load_yaml_file(self, file_path: Path) -> TerminalConfig:
		"""Load configuration from YAML file"""
		try:
			with open(file_path, 'r', encoding='utf-8') as f:
				yaml_data = yaml.safe_load(f) or {}

			if not isinstance(yaml_data, dict):
				self.logger.error(f"Config file {file_path} does not contain a mapping")
				return TerminalConfig()

			return TerminalConfig.from_dict(yaml_data)

		except (yaml.YAMLError, OSError, ValueError) as e:
			self.logger.error(f"Error loading config file {file_path}: {e}")
			return TerminalConfig()

	def merge_cli_args(self, args: argparse.Namespace) -> TerminalConfig:
		"""
		Merge CLI arguments into configuration (CLI takes precedence)

		Args:
			args: Parsed command line arguments

		Returns:
			Updated configuration
		"""
		if self.config is None:
			self.config = TerminalConfig()

		# Presence settings
		if getattr(args, 'no_presence', False):
			self.config.presence.enabled = False
		if getattr(args, 'subscribe_id', None):
			self.config.presence.subscribe_to_id = args.subscribe_id
		if getattr(args, 'feed_url', None):
			self.config.presence.feed_url = args.feed_url

		# Clock settings
		if getattr(args, 'reference_timezone', None):
			self.config.clock.reference_timezone = args.reference_timezone

		# Auxiliary data
		if getattr(args, 'no_github', False):
			self.config.github.enabled = False
		if getattr(args, 'weather_api_key', None):
			self.config.weather.api_key = args.weather_api_key

		# UI settings
		if getattr(args, 'web_interface', False):
			self.config.ui.web_interface_enabled = True
		if getattr(args, 'web_port', None):
			self.config.ui.web_interface_port = args.web_port
		if getattr(args, 'web_host', None):
			self.config.ui.web_interface_host = args.web_host
		if getattr(args, 'theme', None):
			self.config.ui.default_theme = args.theme

		# Console settings
		if getattr(args, 'verbose', False):
			self.config.console.verbose = True
		if getattr(args, 'quiet', False):
			self.config.console.quiet = True
		if getattr(args, 'log_file', None):
			self.config.console.log_file = args.log_file

		return self.config

	def save_config(self, file_path: Optional[str] = None) -> bool:
		"""
		Save current configuration to YAML file

		Args:
			file_path: Target file path, or None to use loaded file path

		Returns:
			True if saved successfully
		"""
		if file_path:
			target_path = Path(file_path)
		elif self.config_file_path:
			target_path = self.config_file_path
		else:
			target_path = Path(self.config_file)

		if self.config is None:
			self.config = TerminalConfig()

		try:
			target_path.parent.mkdir(parents=True, exist_ok=True)

			with open(target_path, 'w', encoding='utf-8') as f:
				f.write("# TigerLake Terminal Configuration\n")
				f.write("# Generated configuration file\n")
				f.write(f"# Version: {self.config.config_version}\n\n")

				yaml.dump(self.config.to_dict(), f,
						 default_flow_style=False,
						 sort_keys=False,
						 allow_unicode=True,
						 indent=2)

			self.logger.info(f"Configuration saved to: {target_path}")
			return True

		except OSError as e:
			self.logger.error(f"Error saving config to {target_path}: {e}")
			return False

	def create_sample_config(self, file_path: str = "tigerlake_terminal_sample.yaml") -> bool:
		"""Create a sample configuration file with comments"""
		try:
			with open(file_path, 'w', encoding='utf-8') as f:
				f.write(self._generate_sample_yaml())

			self.logger.info(f"Sample configuration created: {file_path}")
			return True

		except OSError as e:
			self.logger.error(f"Error creating sample config: {e}")
			return False

	def _generate_sample_yaml(self) -> str:
		"""Generate sample YAML with comments"""
		return """# TigerLake Terminal Configuration File

# =============================================================================
# SITE OWNER
# =============================================================================
site:
  owner: "TigerLake"
  host: "tigerlake.xyz"             # Shown in the prompt: visitor@<host>:~$
  prompt_user: "visitor"
  contact_email: "zac@tigerlake.xyz"
  github_user: "trixzyy"            # Also used for the projects listing
  twitter_handle: "trixzydev"
  discord_handle: "trixzy"
  discord_id: "992171799536218142"

# =============================================================================
# PRESENCE FEED
# =============================================================================
presence:
  enabled: true
  feed_url: "wss://api.lanyard.rest/socket"
  subscribe_to_id: "992171799536218142"   # Account whose presence is tracked
  initial_backoff_seconds: 0.5            # First reconnect delay
  max_backoff_seconds: 30.0               # Reconnect delay ceiling

# =============================================================================
# REFERENCE CLOCK
# =============================================================================
clock:
  reference_timezone: "Europe/London"     # IANA zone name
  reference_label: "the UK"

# =============================================================================
# AUXILIARY DATA
# =============================================================================
github:
  enabled: true
  api_base: "https://api.github.com"
  repository_limit: 6
  timeout_seconds: 10.0

weather:
  api_key: ""                             # Or set OPENWEATHER_API_KEY
  base_url: "https://api.openweathermap.org/data/2.5/weather"
  default_city: "London"
  units: "metric"
  timeout_seconds: 10.0

# =============================================================================
# USER INTERFACE
# =============================================================================
ui:
  web_interface_enabled: false
  web_interface_host: "0.0.0.0"
  web_interface_port: 8000
  default_theme: "dark"                   # light or dark
  show_ascii: true

# =============================================================================
# CONSOLE MESSAGES LOGGING LEVEL
# =============================================================================
console:
  verbose: false                          # Verbose output (more detail)
  quiet: false                            # Quiet mode (warnings and errors only)
  log_file: null

config_version: "1.0"
description: "TigerLake Terminal Configuration"
"""

	def validate_config(self) -> tuple[bool, list[str]]:
		"""
		Validate configuration for common issues

		Returns:
			(is_valid, list_of_errors)
		"""
		errors = []
		config = self.config or TerminalConfig()

		# Presence feed
		if config.presence.enabled:
			if not config.presence.subscribe_to_id:
				errors.append("Presence subscribe_to_id must be set when presence is enabled")
			if not config.presence.feed_url.startswith(("ws://", "wss://")):
				errors.append(f"Invalid presence feed_url: {config.presence.feed_url}")
		if config.presence.initial_backoff_seconds <= 0:
			errors.append(f"Invalid initial backoff: {config.presence.initial_backoff_seconds}")
		if config.presence.max_backoff_seconds < config.presence.initial_backoff_seconds:
			errors.append("Max backoff must not be smaller than the initial backoff")

		# Reference clock
		try:
			ZoneInfo(config.clock.reference_timezone)
		except (ZoneInfoNotFoundError, ValueError):
			errors.append(f"Unknown reference timezone: {config.clock.reference_timezone}")

		# Auxiliary data
		if config.github.repository_limit < 1:
			errors.append(f"Invalid repository limit: {config.github.repository_limit}")

		# UI
		if not (1 <= config.ui.web_interface_port <= 65535):
			errors.append(f"Invalid web interface port: {config.ui.web_interface_port}")
		if config.ui.default_theme not in VALID_THEMES:
			errors.append(f"Invalid default theme: {config.ui.default_theme}. Must be 'light' or 'dark'")

		if config.console.verbose and config.console.quiet:
			errors.append("Console cannot be both verbose and quiet")

		return len(errors) == 0, errors


def create_argument_parser():
	"""Argument parser for the terminal"""
	parser = argparse.ArgumentParser(
		description='TigerLake interactive terminal',
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog="""
Examples:
  %(prog)s                                 # Terminal session with default settings
  %(prog)s --web-interface                 # Serve the terminal page over HTTP
  %(prog)s --no-presence                   # Do not connect to the presence feed
  %(prog)s -c my_config.yaml               # Use specific config file
  %(prog)s --create-config sample.yaml     # Create sample config file

Configuration:
  Configuration is loaded in this order (later overrides earlier):
  1. Built-in defaults
  2. Configuration file (YAML)
  3. Command line arguments

  Config file search order:
  - tigerlake_terminal.yaml (current directory)
  - config/tigerlake_terminal.yaml
  - ~/.config/tigerlake_terminal/config.yaml
  - /etc/tigerlake_terminal/config.yaml
		"""
	)

	config_group = parser.add_argument_group('Configuration')
	config_group.add_argument(
		'-c', '--config',
		type=str,
		help='Configuration file path (YAML format)'
	)
	config_group.add_argument(
		'--create-config',
		type=str,
		metavar='FILE',
		help='Create sample configuration file and exit'
	)
	config_group.add_argument(
		'--save-config',
		type=str,
		metavar='FILE',
		help='Save current configuration to file'
	)

	presence_group = parser.add_argument_group('Presence Feed')
	presence_group.add_argument(
		'--no-presence',
		action='store_true',
		help='Do not connect to the presence feed'
	)
	presence_group.add_argument(
		'--subscribe-id',
		type=str,
		help='Account id whose presence is tracked'
	)
	presence_group.add_argument(
		'--feed-url',
		type=str,
		help='Websocket URL of the presence feed'
	)

	data_group = parser.add_argument_group('Auxiliary Data')
	data_group.add_argument(
		'--reference-timezone',
		type=str,
		help='IANA time zone used by the date command (default: Europe/London)'
	)
	data_group.add_argument(
		'--no-github',
		action='store_true',
		help='Do not fetch the repository list at start-up'
	)
	data_group.add_argument(
		'--weather-api-key',
		type=str,
		help='OpenWeather API key (default: $OPENWEATHER_API_KEY)'
	)

	ui_group = parser.add_argument_group('User Interface')
	ui_group.add_argument(
		'--web-interface',
		action='store_true',
		help='Serve the terminal page instead of a local terminal session'
	)
	ui_group.add_argument(
		'--web-port',
		type=int,
		help='Port for web interface (default: 8000)'
	)
	ui_group.add_argument(
		'--web-host',
		type=str,
		help='Host for web interface (default: 0.0.0.0)'
	)
	ui_group.add_argument(
		'--theme',
		choices=list(VALID_THEMES),
		help='Initial theme'
	)

	debug_group = parser.add_argument_group('Debug Options')
	debug_group.add_argument(
		'-v', '--verbose',
		action='store_true',
		help='Enable verbose debug output'
	)
	debug_group.add_argument(
		'-q', '--quiet',
		action='store_true',
		help='Quiet mode (minimal output)'
	)
	debug_group.add_argument(
		'--log-file',
		type=str,
		help='Log file path'
	)

	return parser


def setup_configuration(argv=None) -> tuple[Optional[TerminalConfig], bool, Optional[ConfigurationManager]]:
	"""
	Setup configuration system with CLI integration

	Args:
		argv: Command line arguments (None for sys.argv)

	Returns:
		(config_object, should_exit, config_manager)
	"""
	parser = create_argument_parser()
	args = parser.parse_args(argv)

	if args.create_config:
		manager = ConfigurationManager()
		if manager.create_sample_config(args.create_config):
			print(f"Sample configuration created: {args.create_config}")
			print(f"Edit the file and run again with: -c {args.create_config}")
		return None, True, None

	manager = ConfigurationManager()
	manager.load_config(args.config)
	config = manager.merge_cli_args(args)

	is_valid, errors = manager.validate_config()
	if not is_valid:
		print("Configuration errors:")
		for error in errors:
			print(f"  ✗ {error}")
		return config, True, None

	if args.save_config:
		if manager.save_config(args.save_config):
			print(f"Configuration saved to: {args.save_config}")

	return config, False, manager


if __name__ == "__main__":
	config, should_exit, _ = setup_configuration()

	if should_exit:
		sys.exit(0 if config is None else 1)

	print("Configuration loaded successfully!")
	print(f"Prompt: {config.site.prompt}")
	print(f"Presence: {config.presence.feed_url} ({'on' if config.presence.enabled else 'off'})")
	print(f"Reference clock: {config.clock.reference_timezone}")
