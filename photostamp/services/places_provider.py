"""Reverse geocoding and nearby place search using the Google Maps APIs."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from photostamp.errors import ResolutionFailed
from photostamp.models import GeoCoordinate

logger = logging.getLogger(__name__)


class GoogleMapsProvider:
	"""Thin client over the Geocoding and Places (New) HTTP APIs."""

	GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
	PLACES_URL = "https://places.googleapis.com/v1/places:searchNearby"
	PLACES_FIELD_MASK = "places.displayName,places.types,places.userRatingCount,places.location"

	def __init__(
		self,
		api_key: Optional[str],
		language: str = "ja",
		timeout: float = 10,
		session: Optional[requests.Session] = None,
	):
		self.api_key = api_key
		self.language = language
		self.timeout = timeout
		self.session = session or requests.Session()

	def _require_key(self) -> str:
		if not self.api_key:
			raise ResolutionFailed("Maps API key is not configured on the server.")
		return self.api_key

	def reverse_geocode(self, coordinate: GeoCoordinate) -> Dict[str, Any]:
		"""
		Look up structured address components for a coordinate.

		Returns:
			The raw Geocoding API payload (``status`` and ``results``)
		"""
		params = {
			"latlng": f"{coordinate.latitude},{coordinate.longitude}",
			"key": self._require_key(),
			"language": self.language,
		}
		try:
			response = self.session.get(self.GEOCODE_URL, params=params, timeout=self.timeout)
			response.raise_for_status()
			return response.json()
		except requests.RequestException as e:
			raise ResolutionFailed(f"Geocoding API request failed: {e}") from e
		except ValueError as e:
			raise ResolutionFailed("Geocoding API returned malformed JSON") from e

	def search_nearby(
		self,
		coordinate: GeoCoordinate,
		radius_m: float = 500.0,
		included_types: Sequence[str] = ("tourist_attraction",),
		max_results: int = 3,
		rank: str = "DISTANCE",
	) -> List[Dict[str, Any]]:
		"""
		Search for places around a coordinate.

		Returns:
			Places in provider-ranked order (possibly empty)
		"""
		headers = {
			"Content-Type": "application/json",
			"X-Goog-Api-Key": self._require_key(),
			"X-Goog-FieldMask": self.PLACES_FIELD_MASK,
		}
		body = {
			"includedTypes": list(included_types),
			"maxResultCount": max_results,
			"languageCode": self.language,
			"rankPreference": rank,
			"locationRestriction": {
				"circle": {
					"center": {"latitude": coordinate.latitude, "longitude": coordinate.longitude},
					"radius": float(radius_m),
				},
			},
		}
		try:
			response = self.session.post(self.PLACES_URL, json=body, headers=headers, timeout=self.timeout)
			response.raise_for_status()
			data = response.json()
		except requests.RequestException as e:
			raise ResolutionFailed(f"Places API request failed: {e}") from e
		except ValueError as e:
			raise ResolutionFailed("Places API returned malformed JSON") from e
		places = data.get("places") if isinstance(data, dict) else None
		logger.debug("Nearby search at %s returned %d places", coordinate, len(places or []))
		return list(places or [])
