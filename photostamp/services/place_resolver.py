from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

import requests

from photostamp.errors import PlaceNotFound, ResolutionFailed
from photostamp.models import CacheEntry, GeoCoordinate, LocationParts
from photostamp.services.cache_store import KeyValueStore
from photostamp.services.geo import cache_key, haversine_m

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60

TOURIST_ATTRACTION = "tourist_attraction"
SEARCH_RADIUS_M = 500.0
MAX_CANDIDATES = 3
MAX_ATTRACTION_DISTANCE_M = 100.0
MIN_REVIEW_COUNT = 50

SPECIFIC_PLACE_PRIORITIES = (
	"point_of_interest",
	"establishment",
	"natural_feature",
	"park",
	"premise",
	"sublocality_level_1",
)
JAPAN_NAMES = {"日本", "Japan"}


class PlacesProvider(Protocol):
	def reverse_geocode(self, coordinate: GeoCoordinate) -> Dict[str, Any]: ...

	def search_nearby(
		self,
		coordinate: GeoCoordinate,
		radius_m: float = ...,
		included_types: Iterable[str] = ...,
		max_results: int = ...,
		rank: str = ...,
	) -> List[Dict[str, Any]]: ...


def pick_tourist_attraction(origin: GeoCoordinate, places: Iterable[Dict[str, Any]]) -> Optional[str]:
	"""Return the name of the first nearby, well-reviewed tourist attraction."""
	for place in places:
		try:
			loc = place["location"]
			candidate = GeoCoordinate(float(loc["latitude"]), float(loc["longitude"]))
			name = place["displayName"]["text"]
		except (KeyError, TypeError, ValueError) as e:
			raise ResolutionFailed(f"Places API returned a malformed place: {e!r}") from e
		reviews = place.get("userRatingCount") or 0
		if (
			haversine_m(origin, candidate) <= MAX_ATTRACTION_DISTANCE_M
			and TOURIST_ATTRACTION in (place.get("types") or [])
			and reviews >= MIN_REVIEW_COUNT
		):
			return name
	return None


def parse_location_parts(payload: Dict[str, Any]) -> LocationParts:
	status = payload.get("status") if isinstance(payload, dict) else None
	results = payload.get("results") if isinstance(payload, dict) else None
	if status != "OK" or not results:
		raise ResolutionFailed(f"Geocoding failed: {status}")

	components = results[0].get("address_components") or []

	def find(kind: str) -> Optional[str]:
		for c in components:
			if kind in (c.get("types") or []):
				return c.get("long_name")
		return None

	country = find("country")
	prefecture = find("administrative_area_level_1")
	city = find("locality") or find("administrative_area_level_2")
	specific = next(
		(
			name
			for name in (find(kind) for kind in SPECIFIC_PLACE_PRIORITIES)
			if name and name != city and name != prefecture
		),
		None,
	)
	return LocationParts(country=country, prefecture=prefecture, city=city, specific_place=specific)


def compose_location(parts: LocationParts, attraction: Optional[str] = None) -> str:
	if parts.country in JAPAN_NAMES and parts.prefecture:
		prefix = parts.prefecture
	else:
		prefix = parts.country
	specific = attraction or parts.specific_place
	unique: List[str] = []
	for token in (prefix, parts.city, specific):
		if token and token not in unique:
			unique.append(token)
	return " ".join(unique)


class CachedResolver(ABC):
	"""Coordinate -> place text with a time-bounded cache in front of ``_lookup``."""

	def __init__(
		self,
		cache: KeyValueStore,
		ttl_seconds: float = CACHE_TTL_SECONDS,
		clock: Callable[[], float] = time.time,
	):
		self.cache = cache
		self.ttl_seconds = ttl_seconds
		self.clock = clock

	@abstractmethod
	def _lookup(self, coordinate: GeoCoordinate) -> str:
		...

	def _cached(self, key: str) -> Optional[str]:
		try:
			raw = self.cache.get(key)
			if raw is None:
				return None
			entry = CacheEntry.from_dict(raw)
			if not entry.is_fresh(self.ttl_seconds, now=self.clock()):
				self.cache.delete(key)
				return None
			return entry.location
		except (KeyError, TypeError, ValueError, OSError) as e:
			logger.warning("Discarding cache entry %s: %s", key, e)
			return None

	def _store(self, key: str, location: str) -> None:
		try:
			self.cache.set(key, CacheEntry(location, self.clock()).to_dict())
		except (OSError, TypeError, ValueError) as e:
			logger.warning("Failed to write cache entry %s: %s", key, e)

	def resolve(self, coordinate: GeoCoordinate) -> str:
		key = cache_key(coordinate)
		cached = self._cached(key)
		if cached:
			logger.debug("Cache hit for %s", key)
			return cached
		logger.debug("Cache miss for %s", key)
		location = self._lookup(coordinate)
		if not location:
			raise PlaceNotFound("Could not determine a place name.")
		self._store(key, location)
		return location


class PlaceResolver(CachedResolver):
	"""Combines a nearby tourist-attraction search with a reverse geocode."""

	def __init__(self, provider: PlacesProvider, cache: KeyValueStore, **kwargs):
		super().__init__(cache, **kwargs)
		self.provider = provider

	def _lookup(self, coordinate: GeoCoordinate) -> str:
		with ThreadPoolExecutor(max_workers=2) as pool:
			nearby = pool.submit(
				self.provider.search_nearby,
				coordinate,
				radius_m=SEARCH_RADIUS_M,
				included_types=[TOURIST_ATTRACTION],
				max_results=MAX_CANDIDATES,
				rank="DISTANCE",
			)
			geocoded = pool.submit(self.provider.reverse_geocode, coordinate)
			places = nearby.result()
			payload = geocoded.result()

		attraction = pick_tourist_attraction(coordinate, places)
		parts = parse_location_parts(payload)
		location = compose_location(parts, attraction)
		logger.info("Resolved %s to %r (attraction=%r)", coordinate, location, attraction)
		return location


class LocationServiceResolver(CachedResolver):
	"""Client of a ``GET /location?lat=..&lng=..`` endpoint."""

	def __init__(
		self,
		base_url: str,
		cache: KeyValueStore,
		session: Optional[requests.Session] = None,
		timeout: float = 10,
		**kwargs,
	):
		super().__init__(cache, **kwargs)
		self.url = base_url.rstrip("/") + "/location"
		self.session = session or requests.Session()
		self.timeout = timeout

	def _lookup(self, coordinate: GeoCoordinate) -> str:
		params = {"lat": coordinate.latitude, "lng": coordinate.longitude}
		try:
			response = self.session.get(self.url, params=params, timeout=self.timeout)
		except requests.RequestException as e:
			raise ResolutionFailed(f"Location service unreachable: {e}") from e

		try:
			data = response.json()
		except ValueError:
			data = {}
		if not isinstance(data, dict):
			data = {}

		if not response.ok:
			raise ResolutionFailed(data.get("error") or f"location service responded with HTTP {response.status_code}")
		location = data.get("location")
		if not location:
			raise PlaceNotFound("Could not determine a place name.")
		return location
