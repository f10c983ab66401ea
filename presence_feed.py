#!/usr/bin/env python3
"""
Presence feed for the TigerLake terminal

Keeps a local view of a third party's presence (online status, activities,
currently playing track) in sync with the Lanyard push feed.

PresenceReconciler - state machine + frame parser + current snapshot.
                     No sockets: feed it synthetic frames in tests.
PresenceFeedClient - aiohttp websocket transport that drives the reconciler,
                     sends the subscription and heartbeats, and reconnects
                     with exponential backoff.

Wire protocol:
	client -> {"op": 2, "d": {"subscribe_to_id": "<id>"}}   once per connection
	client -> {"op": 3}                                     every heartbeat_interval
	server -> {"op": 1, "d": {"heartbeat_interval": 30000}} hello
	server -> {"op": 0, "t": "INIT_STATE" | "PRESENCE_UPDATE", "d": {...}}
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import aiohttp


logger = logging.getLogger(__name__)

OP_EVENT = 0
OP_HELLO = 1
OP_INITIALIZE = 2
OP_HEARTBEAT = 3

SNAPSHOT_EVENTS = ("INIT_STATE", "PRESENCE_UPDATE")

SPOTIFY_TRACK_URL = "https://open.spotify.com/track/{track_id}"


class FeedProtocolError(ValueError):
	"""A frame that could not be turned into presence state"""


class FeedStateError(RuntimeError):
	"""The transport asked for a transition the state machine does not allow"""


class OnlineStatus(Enum):
	ONLINE = "online"
	IDLE = "idle"
	DND = "dnd"
	OFFLINE = "offline"

	@property
	def label(self) -> str:
		return STATUS_LABELS[self]


STATUS_LABELS = {
	OnlineStatus.ONLINE: "Online",
	OnlineStatus.IDLE: "Idle",
	OnlineStatus.DND: "Do Not Disturb",
	OnlineStatus.OFFLINE: "Offline",
}


class ActivityKind(IntEnum):
	PLAYING = 0
	OTHER = -1


@dataclass(frozen=True)
class Activity:
	"""One entry of the activity list"""
	id: str
	name: str
	kind: ActivityKind
	started_at: Optional[int] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			'id': self.id,
			'name': self.name,
			'kind': self.kind.name.lower(),
			'started_at': self.started_at
		}


@dataclass(frozen=True)
class Track:
	"""Currently playing track"""
	title: str
	artist: str
	external_link_id: Optional[str] = None
	album_art_url: Optional[str] = None
	album: Optional[str] = None
	start_timestamp: Optional[int] = None
	end_timestamp: Optional[int] = None

	@property
	def display_name(self) -> str:
		return f"{self.title} - {self.artist}"

	@property
	def external_url(self) -> Optional[str]:
		if not self.external_link_id:
			return None
		return SPOTIFY_TRACK_URL.format(track_id=self.external_link_id)

	def to_dict(self) -> Dict[str, Any]:
		return {
			'title': self.title,
			'artist': self.artist,
			'album': self.album,
			'external_link_id': self.external_link_id,
			'external_url': self.external_url,
			'album_art_url': self.album_art_url,
			'start_timestamp': self.start_timestamp,
			'end_timestamp': self.end_timestamp
		}


@dataclass(frozen=True)
class PresenceSnapshot:
	"""Complete presence state as of the last feed update"""
	online_status: OnlineStatus
	activities: Tuple[Activity, ...] = ()
	track: Optional[Track] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			'online_status': self.online_status.value,
			'status_label': self.online_status.label,
			'activities': [activity.to_dict() for activity in self.activities],
			'track': self.track.to_dict() if self.track else None
		}


@dataclass(frozen=True)
class SnapshotChange:
	"""What differs between two consecutive snapshots"""
	status_changed: bool
	track_changed: bool
	activities_changed: bool

	@property
	def any(self) -> bool:
		return self.status_changed or self.track_changed or self.activities_changed


def diff_snapshots(previous: Optional[PresenceSnapshot], current: PresenceSnapshot) -> SnapshotChange:
	"""Change detection over two sequential snapshots (for animation cues)"""
	if previous is None:
		return SnapshotChange(True, current.track is not None, bool(current.activities))

	return SnapshotChange(
		status_changed=previous.online_status != current.online_status,
		track_changed=_track_identity(previous.track) != _track_identity(current.track),
		activities_changed=previous.activities != current.activities,
	)


def _track_identity(track: Optional[Track]):
	if track is None:
		return None
	return (track.external_link_id, track.title, track.artist)


# ===================================================================
# FRAME PARSING
# ===================================================================

def decode_frame(raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
	"""Decode one inbound frame into a dict"""
	if isinstance(raw, dict):
		return raw
	try:
		frame = json.loads(raw)
	except (TypeError, ValueError) as e:
		raise FeedProtocolError(f"Frame is not valid JSON: {e}") from e
	if not isinstance(frame, dict):
		raise FeedProtocolError(f"Frame is not a JSON object: {type(frame).__name__}")
	return frame


def parse_presence_payload(payload: Any) -> PresenceSnapshot:
	"""Build a snapshot from an INIT_STATE / PRESENCE_UPDATE payload"""
	if not isinstance(payload, dict):
		raise FeedProtocolError("Presence payload is not an object")

	raw_status = payload.get('discord_status')
	if raw_status is None:
		raise FeedProtocolError("Presence payload has no discord_status")
	try:
		status = OnlineStatus(raw_status)
	except ValueError as e:
		raise FeedProtocolError(f"Unknown online status: {raw_status!r}") from e

	raw_activities = payload.get('activities') or []
	if not isinstance(raw_activities, list):
		raise FeedProtocolError("Presence activities is not a list")
	activities = tuple(_parse_activity(item) for item in raw_activities)

	track = None
	if payload.get('spotify'):
		track = _parse_spotify(payload['spotify'])
	elif payload.get('track'):
		track = _parse_track(payload['track'])

	return PresenceSnapshot(online_status=status, activities=activities, track=track)


def _parse_activity(item: Any) -> Activity:
	if not isinstance(item, dict) or 'name' not in item:
		raise FeedProtocolError("Activity entry without a name")
	kind = ActivityKind.PLAYING if item.get('type') == ActivityKind.PLAYING else ActivityKind.OTHER
	timestamps = _timestamps(item)
	started_at = timestamps.get('start', item.get('created_at'))
	return Activity(
		id=str(item.get('id', '')),
		name=str(item['name']),
		kind=kind,
		started_at=_optional_int(started_at),
	)


def _parse_spotify(section: Any) -> Track:
	if not isinstance(section, dict) or 'song' not in section or 'artist' not in section:
		raise FeedProtocolError("Spotify section without song/artist")
	timestamps = _timestamps(section)
	return Track(
		title=str(section['song']),
		artist=str(section['artist']),
		external_link_id=section.get('track_id'),
		album_art_url=section.get('album_art_url'),
		album=section.get('album'),
		start_timestamp=_optional_int(timestamps.get('start')),
		end_timestamp=_optional_int(timestamps.get('end')),
	)


def _parse_track(section: Any) -> Track:
	if not isinstance(section, dict) or 'title' not in section or 'artist' not in section:
		raise FeedProtocolError("Track section without title/artist")
	return Track(
		title=str(section['title']),
		artist=str(section['artist']),
		external_link_id=section.get('external_link_id'),
		album_art_url=section.get('album_art_url'),
		album=section.get('album'),
		start_timestamp=_optional_int(section.get('start_timestamp')),
		end_timestamp=_optional_int(section.get('end_timestamp')),
	)


def _timestamps(section: Dict[str, Any]) -> Dict[str, Any]:
	timestamps = section.get('timestamps') or {}
	if not isinstance(timestamps, dict):
		raise FeedProtocolError(f"Timestamps is not an object: {timestamps!r}")
	return timestamps


def _optional_int(value: Any) -> Optional[int]:
	if value is None:
		return None
	try:
		return int(value)
	except (TypeError, ValueError) as e:
		raise FeedProtocolError(f"Expected a timestamp, got {value!r}") from e


# ===================================================================
# RECONCILER
# ===================================================================

class FeedState(Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	SUBSCRIBED = "subscribed"
	RECEIVING = "receiving"


TRANSITIONS = {
	(FeedState.DISCONNECTED, "connect"): FeedState.CONNECTING,
	(FeedState.CONNECTING, "open"): FeedState.SUBSCRIBED,
	(FeedState.SUBSCRIBED, "frame"): FeedState.RECEIVING,
	(FeedState.RECEIVING, "frame"): FeedState.RECEIVING,
	(FeedState.DISCONNECTED, "close"): FeedState.DISCONNECTED,
	(FeedState.CONNECTING, "close"): FeedState.DISCONNECTED,
	(FeedState.SUBSCRIBED, "close"): FeedState.DISCONNECTED,
	(FeedState.RECEIVING, "close"): FeedState.DISCONNECTED,
}

SnapshotListener = Callable[[Optional[PresenceSnapshot], PresenceSnapshot], None]


class PresenceReconciler:
	"""Subscription lifecycle and current presence snapshot for one tracked account"""

	def __init__(self, subscribe_to_id: str):
		self.subscribe_to_id = subscribe_to_id
		self.state = FeedState.DISCONNECTED
		self.snapshot: Optional[PresenceSnapshot] = None
		self.heartbeat_interval: Optional[float] = None  # seconds
		self.last_update_at: Optional[float] = None
		self.frames_received = 0
		self.frames_dropped = 0
		self._listeners: List[SnapshotListener] = []

	def add_listener(self, listener: SnapshotListener):
		"""Call listener(previous, current) after every snapshot replacement"""
		self._listeners.append(listener)

	def remove_listener(self, listener: SnapshotListener):
		if listener in self._listeners:
			self._listeners.remove(listener)

	def _transition(self, event: str):
		try:
			new_state = TRANSITIONS[(self.state, event)]
		except KeyError:
			raise FeedStateError(f"Cannot '{event}' while {self.state.value}") from None
		if new_state != self.state:
			logger.debug(f"Presence feed {self.state.value} -> {new_state.value}")
		self.state = new_state

	def begin_connect(self):
		"""Transport is about to (re)open the connection"""
		self._transition("connect")

	def connection_opened(self) -> Dict[str, Any]:
		"""Connection is up; returns the subscription frame to send on it"""
		self._transition("open")
		self.heartbeat_interval = None
		return {"op": OP_INITIALIZE, "d": {"subscribe_to_id": self.subscribe_to_id}}

	def connection_lost(self, reason: Optional[str] = None):
		"""Connection dropped; the snapshot stays at its last known value"""
		self._transition("close")
		self.heartbeat_interval = None
		if reason:
			logger.info(f"Presence feed disconnected: {reason}")

	def heartbeat_frame(self) -> Dict[str, Any]:
		return {"op": OP_HEARTBEAT}

	def receive(self, raw: Union[str, bytes, Dict[str, Any]]) -> bool:
		"""
		Process one inbound frame

		Returns:
			True if the snapshot was replaced
		"""
		self._transition("frame")
		self.frames_received += 1

		try:
			frame = decode_frame(raw)
			op = frame.get('op')

			if op == OP_HELLO:
				hello = frame.get('d') or {}
				if not isinstance(hello, dict):
					raise FeedProtocolError("Hello payload is not an object")
				interval = hello.get('heartbeat_interval')
				if interval is not None:
					self.heartbeat_interval = float(interval) / 1000.0
					logger.debug(f"Presence feed heartbeat every {self.heartbeat_interval:.1f}s")
				return False

			if frame.get('t') not in SNAPSHOT_EVENTS:
				logger.debug(f"Ignoring presence frame op={op} t={frame.get('t')}")
				return False

			snapshot = parse_presence_payload(frame.get('d'))

		except (FeedProtocolError, AttributeError, TypeError, ValueError) as e:
			self.frames_dropped += 1
			logger.warning(f"Dropping malformed presence frame: {e}")
			return False

		self._replace(snapshot)
		return True

	def _replace(self, snapshot: PresenceSnapshot):
		previous = self.snapshot
		self.snapshot = snapshot
		self.last_update_at = time.time()

		for listener in list(self._listeners):
			try:
				listener(previous, snapshot)
			except Exception as e:
				logger.error(f"Presence listener error: {e}")

	def get_stats(self) -> Dict[str, Any]:
		return {
			'state': self.state.value,
			'frames_received': self.frames_received,
			'frames_dropped': self.frames_dropped,
			'last_update_at': self.last_update_at,
			'heartbeat_interval': self.heartbeat_interval
		}


# ===================================================================
# TRANSPORT
# ===================================================================

class PresenceFeedClient:
	"""aiohttp websocket transport for a PresenceReconciler"""

	def __init__(self, reconciler: PresenceReconciler, url: str,
				 initial_backoff: float = 0.5, max_backoff: float = 30.0,
				 session_factory: Callable[[], Any] = aiohttp.ClientSession):
		self.reconciler = reconciler
		self.url = url
		self.initial_backoff = initial_backoff
		self.max_backoff = max_backoff
		self.session_factory = session_factory
		self.reconnects = 0

		self._stop_event = asyncio.Event()
		self._task: Optional[asyncio.Task] = None

	@classmethod
	def from_config(cls, presence_config, **kwargs) -> 'PresenceFeedClient':
		reconciler = PresenceReconciler(presence_config.subscribe_to_id)
		return cls(
			reconciler,
			presence_config.feed_url,
			initial_backoff=presence_config.initial_backoff_seconds,
			max_backoff=presence_config.max_backoff_seconds,
			**kwargs
		)

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	async def start(self):
		"""Open the feed in the background"""
		if self.running:
			return
		self._stop_event.clear()
		self._task = asyncio.create_task(self._run(), name="presence-feed")
		logger.info(f"Presence feed started: {self.url}")

	async def stop(self):
		"""Close the feed and wait for the background task to finish"""
		self._stop_event.set()
		if self._task is not None:
			self._task.cancel()
			try:
				await self._task
			except asyncio.CancelledError:
				pass
			self._task = None
		logger.info("Presence feed stopped")

	async def __aenter__(self) -> 'PresenceFeedClient':
		await self.start()
		return self

	async def __aexit__(self, exc_type, exc, tb):
		await self.stop()

	async def _run(self):
		backoff = self.initial_backoff

		while not self._stop_event.is_set():
			self.reconciler.begin_connect()
			reason = "closed by server"
			try:
				async with self.session_factory() as session:
					async with session.ws_connect(self.url) as ws:
						await ws.send_json(self.reconciler.connection_opened())
						backoff = self.initial_backoff
						await self._pump(ws)
			except asyncio.CancelledError:
				reason = "stopped"
				raise
			except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
				reason = str(e) or type(e).__name__
				logger.warning(f"Presence feed connection error: {reason}")
			finally:
				self.reconciler.connection_lost(reason)

			if self._stop_event.is_set():
				break

			self.reconnects += 1
			logger.debug(f"Reconnecting to presence feed in {backoff:.1f}s")
			try:
				await asyncio.wait_for(self._stop_event.wait(), timeout=backoff)
			except asyncio.TimeoutError:
				pass
			backoff = min(backoff * 2, self.max_backoff)

	async def _pump(self, ws):
		heartbeat_task: Optional[asyncio.Task] = None
		try:
			async for msg in ws:
				if msg.type == aiohttp.WSMsgType.TEXT:
					self.reconciler.receive(msg.data)
					if heartbeat_task is None and self.reconciler.heartbeat_interval:
						heartbeat_task = asyncio.create_task(
							self._heartbeat(ws, self.reconciler.heartbeat_interval)
						)
				elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
					break
		finally:
			if heartbeat_task is not None:
				heartbeat_task.cancel()
				try:
					await heartbeat_task
				except asyncio.CancelledError:
					pass

	async def _heartbeat(self, ws, interval: float):
		while True:
			await asyncio.sleep(interval)
			try:
				await ws.send_json(self.reconciler.heartbeat_frame())
			except (aiohttp.ClientError, ConnectionResetError) as e:
				logger.warning(f"Presence heartbeat failed: {e}")
				return
