from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, Optional, Protocol

from photostamp.config import Settings
from photostamp.errors import CoordinateMissing, PhotoStampError
from photostamp.models import CaptureMetadata, GeoCoordinate, PhotoTask
from photostamp.services import metadata
from photostamp.services.cache_store import JsonDirectoryStore, KeyValueStore, MemoryStore
from photostamp.services.place_resolver import LocationServiceResolver, PlaceResolver
from photostamp.services.places_provider import GoogleMapsProvider
from photostamp.services.stamp_renderer import StampRenderer, decode_image
from photostamp.services.state_machine import PipelineEvent, transition

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


class Resolver(Protocol):
	def resolve(self, coordinate: GeoCoordinate) -> str: ...


def suggest_filename(location: str, date: str) -> str:
	return f"{_UNSAFE_CHARS.sub('_', location).lower()}_{date.replace('/', '-')}.jpg"


class PhotoPipeline:
	"""Drives one task at a time through read -> geocode -> draw."""

	def __init__(
		self,
		resolver: Resolver,
		renderer: Optional[StampRenderer] = None,
		extract: Callable[[bytes], CaptureMetadata] = metadata.extract,
	):
		self.resolver = resolver
		self.renderer = renderer or StampRenderer()
		self.extract = extract

	def _advance(self, task: PhotoTask, event: PipelineEvent) -> None:
		task.status = transition(task.status, event)
		logger.info("%s: %s", task.filename, task.status.value)

	def _fail(self, task: PhotoTask, message: str) -> None:
		task.error_message = message
		self._advance(task, PipelineEvent.FAILED)

	def run(self, task: PhotoTask) -> PhotoTask:
		self._advance(task, PipelineEvent.START)
		try:
			meta = self.extract(task.data)
			if meta.coordinate is None:
				raise CoordinateMissing("No GPS data found in the photo.")
			self._advance(task, PipelineEvent.METADATA_READ)

			location = self.resolver.resolve(meta.coordinate)
			task.location_text = location
			task.stamp_text = f"{location} {meta.capture_date}"
			self._advance(task, PipelineEvent.LOCATION_RESOLVED)

			image = decode_image(task.data)
			task.result_image = self.renderer.render(image, meta.orientation, task.stamp_text)
			task.suggested_filename = suggest_filename(location, meta.capture_date or metadata.DATE_UNKNOWN)
			self._advance(task, PipelineEvent.STAMP_RENDERED)
		except PhotoStampError as e:
			logger.warning("%s failed: %s", task.filename, e)
			self._fail(task, str(e))
		except Exception as e:
			logger.exception("Unexpected error while processing %s", task.filename)
			self._fail(task, str(e) or "An unknown error occurred.")
		return task


def run_batch(pipeline: PhotoPipeline, tasks: Iterable[PhotoTask], max_workers: int = 4) -> List[PhotoTask]:
	"""Run every task independently; one failure never stops the others."""
	tasks = list(tasks)
	if not tasks:
		return tasks
	with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks)))) as pool:
		futures = {pool.submit(pipeline.run, task): task for task in tasks}
		for future in as_completed(futures):
			try:
				future.result()
			except PhotoStampError as e:
				logger.warning("Skipped %s: %s", futures[future].filename, e)
	return tasks


def build_cache(settings: Settings) -> KeyValueStore:
	if settings.cache_dir:
		return JsonDirectoryStore(settings.cache_dir)
	return MemoryStore()


def build_pipeline(settings: Settings, cache: Optional[KeyValueStore] = None) -> PhotoPipeline:
	cache = cache if cache is not None else build_cache(settings)
	if settings.location_service_url:
		resolver: Resolver = LocationServiceResolver(
			settings.location_service_url,
			cache,
			timeout=settings.http_timeout,
			ttl_seconds=settings.cache_ttl_seconds,
		)
	else:
		provider = GoogleMapsProvider(settings.google_maps_api_key, language=settings.language, timeout=settings.http_timeout)
		resolver = PlaceResolver(provider, cache, ttl_seconds=settings.cache_ttl_seconds)
	return PhotoPipeline(resolver, StampRenderer(settings.font_path))
