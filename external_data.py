#!/usr/bin/env python3
"""
Auxiliary read-only data for the TigerLake terminal
- GitHub repository list shown by the projects command
- OpenWeather current conditions for the weather command

Both are plain asynchronous sources: the dispatcher may call them, nothing
here holds session state.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp


logger = logging.getLogger(__name__)


class ExternalDataError(Exception):
	"""An auxiliary source could not deliver usable data"""


@dataclass(frozen=True)
class Repository:
	"""One public repository"""
	id: int
	name: str
	html_url: str
	description: Optional[str] = None
	stargazers_count: int = 0
	forks_count: int = 0

	@classmethod
	def from_api(cls, data: Dict[str, Any]) -> 'Repository':
		return cls(
			id=int(data['id']),
			name=data['name'],
			html_url=data['html_url'],
			description=data.get('description'),
			stargazers_count=int(data.get('stargazers_count', 0)),
			forks_count=int(data.get('forks_count', 0))
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			'id': self.id,
			'name': self.name,
			'html_url': self.html_url,
			'description': self.description,
			'stargazers_count': self.stargazers_count,
			'forks_count': self.forks_count
		}


@dataclass(frozen=True)
class WeatherReport:
	"""Current conditions for one city"""
	city: str
	country: str
	temperature: float
	feels_like: float
	description: str
	humidity: int
	wind_speed: float

	@classmethod
	def from_api(cls, data: Dict[str, Any]) -> 'WeatherReport':
		return cls(
			city=data['name'],
			country=data.get('sys', {}).get('country', ''),
			temperature=float(data['main']['temp']),
			feels_like=float(data['main']['feels_like']),
			description=data['weather'][0]['description'],
			humidity=int(data['main']['humidity']),
			wind_speed=float(data.get('wind', {}).get('speed', 0.0))
		)

	def format_summary(self) -> str:
		return "\n".join([
			f"Weather in {self.city}, {self.country}",
			f"Temperature: {round(self.temperature)}°C",
			f"Feels like: {round(self.feels_like)}°C",
			f"Description: {self.description}",
			f"Humidity: {self.humidity}%",
			f"Wind speed: {self.wind_speed} m/s",
		])

	def to_dict(self) -> Dict[str, Any]:
		return {
			'city': self.city,
			'country': self.country,
			'temperature': self.temperature,
			'feels_like': self.feels_like,
			'description': self.description,
			'humidity': self.humidity,
			'wind_speed': self.wind_speed
		}


async def _get_json(session_factory, url: str, params: Dict[str, Any], timeout: float,
					headers: Optional[Dict[str, str]] = None) -> Tuple[int, Any]:
	try:
		async with session_factory() as session:
			async with session.get(url, params=params, headers=headers,
								   timeout=aiohttp.ClientTimeout(total=timeout)) as response:
				return response.status, await response.json(content_type=None)
	except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
		raise ExternalDataError(f"Request to {url} failed: {e}") from e


class GitHubClient:
	"""Fetches a user's most starred public repositories"""

	def __init__(self, username: str, api_base: str = "https://api.github.com",
				 limit: int = 6, timeout: float = 10.0,
				 session_factory: Callable[[], Any] = aiohttp.ClientSession):
		self.username = username
		self.api_base = api_base.rstrip('/')
		self.limit = limit
		self.timeout = timeout
		self.session_factory = session_factory

	@classmethod
	def from_config(cls, config, **kwargs) -> 'GitHubClient':
		return cls(
			config.site.github_user,
			api_base=config.github.api_base,
			limit=config.github.repository_limit,
			timeout=config.github.timeout_seconds,
			**kwargs
		)

	async def fetch_repositories(self) -> List[Repository]:
		url = f"{self.api_base}/users/{self.username}/repos"
		status, data = await _get_json(
			self.session_factory, url,
			params={'per_page': 100, 'type': 'owner'},
			timeout=self.timeout,
			headers={'Accept': 'application/vnd.github+json'}
		)
		if status != 200 or not isinstance(data, list):
			raise ExternalDataError(f"GitHub returned status {status} for {self.username}")

		if not all(isinstance(item, dict) for item in data):
			raise ExternalDataError(f"Unexpected repository data for {self.username}")

		try:
			repositories = [Repository.from_api(item) for item in data if not item.get('fork')]
		except (KeyError, TypeError, ValueError) as e:
			raise ExternalDataError(f"Unexpected repository data: {e}") from e

		repositories.sort(key=lambda repo: repo.stargazers_count, reverse=True)
		return repositories[:self.limit]


class WeatherClient:
	"""OpenWeather current-conditions lookup"""

	def __init__(self, api_key: str, base_url: str = "https://api.openweathermap.org/data/2.5/weather",
				 default_city: str = "London", units: str = "metric", timeout: float = 10.0,
				 session_factory: Callable[[], Any] = aiohttp.ClientSession):
		self.api_key = api_key
		self.base_url = base_url
		self.default_city = default_city
		self.units = units
		self.timeout = timeout
		self.session_factory = session_factory

	@classmethod
	def from_config(cls, weather_config, **kwargs) -> Optional['WeatherClient']:
		"""None when no API key is available"""
		api_key = weather_config.effective_api_key
		if not api_key:
			return None
		return cls(
			api_key,
			base_url=weather_config.base_url,
			default_city=weather_config.default_city,
			units=weather_config.units,
			timeout=weather_config.timeout_seconds,
			**kwargs
		)

	async def fetch(self, city: Optional[str] = None) -> WeatherReport:
		city = city or self.default_city
		status, data = await _get_json(
			self.session_factory, self.base_url,
			params={'q': city, 'appid': self.api_key, 'units': self.units},
			timeout=self.timeout
		)
		# OpenWeather reports "cod" as int on success and as a string on errors
		if not isinstance(data, dict) or str(data.get('cod')) != "200":
			raise ExternalDataError(f"No weather data for {city} (status {status})")

		try:
			return WeatherReport.from_api(data)
		except (KeyError, IndexError, TypeError, ValueError) as e:
			raise ExternalDataError(f"Unexpected weather data for {city}: {e}") from e


class RepositoryCache:
	"""Last fetched repository list, read by every session"""

	def __init__(self, client: Optional[GitHubClient] = None):
		self.client = client
		self.repositories: Tuple[Repository, ...] = ()

	async def refresh(self) -> Tuple[Repository, ...]:
		"""Fetch again; on failure the previous list is kept"""
		if self.client is None:
			return self.repositories
		try:
			self.repositories = tuple(await self.client.fetch_repositories())
			logger.info(f"Loaded {len(self.repositories)} repositories for {self.client.username}")
		except ExternalDataError as e:
			logger.warning(f"Repository refresh failed: {e}")
		return self.repositories
