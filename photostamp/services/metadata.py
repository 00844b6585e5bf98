from __future__ import annotations

import logging
import struct
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Optional, Sequence

import piexif
from PIL import Image, UnidentifiedImageError

from photostamp.errors import MetadataMissing
from photostamp.models import CaptureMetadata, GeoCoordinate

logger = logging.getLogger(__name__)

DATE_UNKNOWN = "date unknown"
_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def _rational_to_float(x: Any) -> Optional[float]:
	if x is None:
		return None
	if isinstance(x, tuple) and len(x) == 2:
		num, den = x
		if not den:
			return None
		return float(num) / float(den)
	try:
		return float(x)
	except (TypeError, ValueError):
		return None


def _bytes_to_str(v: Any) -> Optional[str]:
	if v is None:
		return None
	if isinstance(v, bytes):
		return v.decode("utf-8", errors="ignore").strip("\x00 ")
	if isinstance(v, str):
		return v
	return str(v)


def _to_int_safe(v: Any) -> Optional[int]:
	if v is None:
		return None
	if isinstance(v, int):
		return v
	if isinstance(v, (list, tuple)) and v:
		return _to_int_safe(v[0])
	try:
		return int(v)
	except (TypeError, ValueError):
		return None


def dms_to_decimal(dms: Sequence[Any], ref: Any) -> float:
	"""Convert an EXIF degrees/minutes/seconds triple to signed decimal degrees.

	Anything that is not a 3-element sequence converts to 0.0 instead of
	failing the whole extraction.
	"""
	if not isinstance(dms, (list, tuple)) or len(dms) != 3:
		logger.warning("Malformed GPS value %r, using 0.0", dms)
		return 0.0
	deg, minutes, seconds = (_rational_to_float(part) or 0.0 for part in dms)
	dd = deg + minutes / 60.0 + seconds / 3600.0
	if (_bytes_to_str(ref) or "").upper() in ("S", "W"):
		dd = -dd
	return dd


def format_capture_date(raw: Any) -> str:
	"""Turn an EXIF ``YYYY:MM:DD HH:MM:SS`` stamp into ``YYYY/MM/DD``."""
	text = _bytes_to_str(raw)
	if not text:
		return DATE_UNKNOWN
	# only the date part uses ':' as separator
	clean = text.strip().replace(":", "-", 2)
	for fmt in _DATE_FORMATS:
		try:
			return datetime.strptime(clean, fmt).strftime("%Y/%m/%d")
		except ValueError:
			continue
	return DATE_UNKNOWN


def _load_exif(image_bytes: bytes) -> Dict[str, Any]:
	try:
		with Image.open(BytesIO(image_bytes)) as img:
			# PNG eXIf chunks after the image data only show up once loaded
			img.getexif()
			raw = img.info.get("exif")
	except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
		raise MetadataMissing(f"EXIF data not found: {e}") from e
	if not raw:
		raise MetadataMissing("EXIF data not found.")
	try:
		return piexif.load(raw)
	except (ValueError, struct.error, piexif.InvalidImageDataError) as e:
		raise MetadataMissing(f"EXIF data could not be parsed: {e}") from e


def _coordinate(gps: Dict[int, Any]) -> Optional[GeoCoordinate]:
	lat = gps.get(piexif.GPSIFD.GPSLatitude)
	lng = gps.get(piexif.GPSIFD.GPSLongitude)
	lat_ref = gps.get(piexif.GPSIFD.GPSLatitudeRef)
	lng_ref = gps.get(piexif.GPSIFD.GPSLongitudeRef)
	if not lat or not lng or not lat_ref or not lng_ref:
		return None
	return GeoCoordinate(latitude=dms_to_decimal(lat, lat_ref), longitude=dms_to_decimal(lng, lng_ref))


def extract(image_bytes: bytes) -> CaptureMetadata:
	ex = _load_exif(image_bytes)
	zeroth = ex.get("0th") or {}
	exif = ex.get("Exif") or {}
	gps = ex.get("GPS") or {}
	if not (zeroth or exif or gps):
		raise MetadataMissing("EXIF data not found.")

	dt = exif.get(piexif.ExifIFD.DateTimeOriginal) or zeroth.get(piexif.ImageIFD.DateTime)
	capture_date = format_capture_date(dt) if dt else DATE_UNKNOWN

	orientation = _to_int_safe(zeroth.get(piexif.ImageIFD.Orientation))
	if orientation is None or not 1 <= orientation <= 8:
		orientation = 1

	return CaptureMetadata(coordinate=_coordinate(gps), capture_date=capture_date, orientation=orientation)
