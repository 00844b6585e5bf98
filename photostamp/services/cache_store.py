from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
	def get(self, key: str) -> Optional[Dict[str, Any]]: ...

	def set(self, key: str, value: Dict[str, Any]) -> None: ...

	def delete(self, key: str) -> None: ...


class MemoryStore:
	"""Process-local store; a cold start is just an empty dict."""

	def __init__(self) -> None:
		self._data: Dict[str, Dict[str, Any]] = {}
		self._lock = threading.Lock()

	def get(self, key: str) -> Optional[Dict[str, Any]]:
		with self._lock:
			value = self._data.get(key)
			return dict(value) if value is not None else None

	def set(self, key: str, value: Dict[str, Any]) -> None:
		with self._lock:
			self._data[key] = dict(value)

	def delete(self, key: str) -> None:
		with self._lock:
			self._data.pop(key, None)

	def __len__(self) -> int:
		return len(self._data)


class JsonDirectoryStore:
	"""One ``<key>.json`` file per entry under ``root``."""

	def __init__(self, root: Path) -> None:
		self.root = Path(root)
		self.root.mkdir(parents=True, exist_ok=True)

	def _path(self, key: str) -> Path:
		return self.root / f"{key}.json"

	def get(self, key: str) -> Optional[Dict[str, Any]]:
		path = self._path(key)
		if not path.exists():
			return None
		try:
			with path.open("r", encoding="utf-8") as f:
				return json.load(f)
		except (OSError, ValueError) as e:
			logger.warning("Ignoring unreadable cache file %s: %s", path, e)
			return None

	def set(self, key: str, value: Dict[str, Any]) -> None:
		path = self._path(key)
		tmp = path.with_name(f"{path.name}.{threading.get_ident()}.tmp")
		with tmp.open("w", encoding="utf-8") as f:
			json.dump(value, f, ensure_ascii=False)
		os.replace(tmp, path)

	def delete(self, key: str) -> None:
		self._path(key).unlink(missing_ok=True)
