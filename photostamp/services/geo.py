from __future__ import annotations

import math

from photostamp.models import GeoCoordinate

EARTH_RADIUS_M = 6371000.0
CACHE_VERSION = "loc_v6"


def haversine_m(a: GeoCoordinate, b: GeoCoordinate) -> float:
	"""Great-circle distance between two coordinates in metres."""
	phi1 = math.radians(a.latitude)
	phi2 = math.radians(b.latitude)
	dphi = math.radians(b.latitude - a.latitude)
	dlambda = math.radians(b.longitude - a.longitude)
	h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
	return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def cache_key(coordinate: GeoCoordinate) -> str:
	# 4 decimals is roughly 11 m
	return f"{CACHE_VERSION}_{coordinate.latitude:.4f}_{coordinate.longitude:.4f}"
