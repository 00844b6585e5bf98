from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from photostamp.models import PhotoTask

logger = logging.getLogger(__name__)

BATCH_TTL_SECONDS = 6 * 60 * 60


class BatchStore:
	"""In-memory registry of uploaded batches and their photo tasks.

	Nothing is written to disk; clearing a batch simply drops the tasks, and
	pipeline runs still in flight finish on objects nobody reads any more.
	Batches untouched for ``ttl_seconds`` are dropped when a new batch is created.
	"""

	def __init__(self, ttl_seconds: float = BATCH_TTL_SECONDS, clock: Callable[[], float] = time.time) -> None:
		self._batches: Dict[str, Dict[str, PhotoTask]] = {}
		self._touched: Dict[str, float] = {}
		self._lock = threading.Lock()
		self.ttl_seconds = ttl_seconds
		self.clock = clock

	def _evict_stale(self, now: float) -> None:
		stale = [b for b, t in self._touched.items() if now - t > self.ttl_seconds]
		for batch_id in stale:
			self._batches.pop(batch_id, None)
			self._touched.pop(batch_id, None)
		if stale:
			logger.info("Dropped %d expired batch(es)", len(stale))

	def create_batch(self) -> str:
		batch_id = uuid.uuid4().hex
		with self._lock:
			now = self.clock()
			self._evict_stale(now)
			self._batches[batch_id] = {}
			self._touched[batch_id] = now
		return batch_id

	def add_files(
		self, batch_id: str, files: Iterable[Tuple[str, bytes]]
	) -> Optional[Tuple[List[PhotoTask], List[str]]]:
		"""Add files to a batch, skipping names it already holds.

		Returns the new tasks and the skipped filenames, or None when the batch
		does not exist (never created, cleared or expired).
		"""
		added: List[PhotoTask] = []
		skipped: List[str] = []
		with self._lock:
			tasks = self._batches.get(batch_id)
			if tasks is None:
				return None
			self._touched[batch_id] = self.clock()
			names = {t.filename for t in tasks.values()}
			for filename, data in files:
				if filename in names:
					skipped.append(filename)
					continue
				task = PhotoTask(filename=filename, data=data)
				tasks[task.task_id] = task
				names.add(filename)
				added.append(task)
		return added, skipped

	def has_batch(self, batch_id: str) -> bool:
		with self._lock:
			return batch_id in self._batches

	def get_task(self, batch_id: str, task_id: str) -> Optional[PhotoTask]:
		with self._lock:
			return self._batches.get(batch_id, {}).get(task_id)

	def read_status(self, batch_id: str) -> Optional[Dict[str, Any]]:
		with self._lock:
			tasks = self._batches.get(batch_id)
			if tasks is None:
				return None
			snapshot = [t.to_status() for t in tasks.values()]
		counts: Dict[str, int] = {}
		for s in snapshot:
			counts[s["status"]] = counts.get(s["status"], 0) + 1
		return {"batch_id": batch_id, "counts": counts, "tasks": snapshot}

	def clear(self, batch_id: str) -> bool:
		with self._lock:
			self._touched.pop(batch_id, None)
			return self._batches.pop(batch_id, None) is not None
