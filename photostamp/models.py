from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from photostamp.services.state_machine import ProcessingStatus


@dataclass(frozen=True)
class GeoCoordinate:
	latitude: float
	longitude: float


@dataclass(frozen=True)
class CaptureMetadata:
	coordinate: Optional[GeoCoordinate] = None
	capture_date: Optional[str] = None
	orientation: int = 1


@dataclass(frozen=True)
class CacheEntry:
	location: str
	timestamp: float = field(default_factory=time.time)

	def is_fresh(self, ttl_seconds: float, now: Optional[float] = None) -> bool:
		now = time.time() if now is None else now
		return now - self.timestamp <= ttl_seconds

	def to_dict(self) -> Dict[str, Any]:
		return {"location": self.location, "timestamp": self.timestamp}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
		return cls(location=str(data["location"]), timestamp=float(data["timestamp"]))


@dataclass(frozen=True)
class LocationParts:
	country: Optional[str] = None
	prefecture: Optional[str] = None
	city: Optional[str] = None
	specific_place: Optional[str] = None


@dataclass(frozen=True)
class StampedImage:
	data: bytes
	text: str
	width: int
	height: int
	content_type: str = "image/jpeg"


@dataclass
class PhotoTask:
	"""One submitted photo and everything the pipeline learns about it.

	Only the pipeline run that owns the task mutates it.
	"""
	filename: str
	data: bytes
	task_id: str = field(default_factory=lambda: uuid.uuid4().hex)
	status: ProcessingStatus = ProcessingStatus.IDLE
	error_message: Optional[str] = None
	location_text: Optional[str] = None
	stamp_text: Optional[str] = None
	result_image: Optional[StampedImage] = None
	suggested_filename: Optional[str] = None

	def to_status(self) -> Dict[str, Any]:
		return {
			"task_id": self.task_id,
			"filename": self.filename,
			"status": self.status.value,
			"error": self.error_message,
			"location": self.location_text,
			"stamp_text": self.stamp_text,
			"suggested_filename": self.suggested_filename,
		}
