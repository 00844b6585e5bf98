from __future__ import annotations

import logging
import math
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from photostamp.errors import PlaceNotFound, ResolutionFailed
from photostamp.models import GeoCoordinate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["location"])


def _parse_coordinate(value: Optional[str]) -> float:
	try:
		parsed = float(value) if value is not None else 0.0
	except ValueError:
		return 0.0
	return parsed if math.isfinite(parsed) else 0.0


@router.get("/location", summary="Resolve a coordinate to a display place name")
def location(request: Request, lat: Optional[str] = None, lng: Optional[str] = None):
	latitude = _parse_coordinate(lat)
	longitude = _parse_coordinate(lng)
	# 0 is rejected along with missing values
	if not latitude or not longitude:
		return JSONResponse({"error": "Latitude or longitude is invalid."}, status_code=400)

	resolver = request.app.state.location_resolver
	try:
		name = resolver.resolve(GeoCoordinate(latitude, longitude))
	except PlaceNotFound as e:
		return JSONResponse({"error": str(e)}, status_code=404)
	except ResolutionFailed as e:
		logger.warning("Location lookup for %s,%s failed: %s", latitude, longitude, e)
		return JSONResponse({"error": str(e)}, status_code=500)
	return {"location": name}
