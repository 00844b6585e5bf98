from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_path(value: Optional[str]) -> Optional[Path]:
	return Path(value) if value else None


@dataclass(frozen=True)
class Settings:
	# Providers
	google_maps_api_key: Optional[str] = os.getenv("GOOGLE_MAPS_API_KEY") or os.getenv("API_KEY")
	language: str = os.getenv("PHOTOSTAMP_LANGUAGE", "ja")
	# When set, the pipeline resolves places through GET <url>/location instead of calling Google directly
	location_service_url: Optional[str] = os.getenv("PHOTOSTAMP_LOCATION_URL") or None
	http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "10"))

	# Location cache
	cache_dir: Optional[Path] = _optional_path(os.getenv("PHOTOSTAMP_CACHE_DIR"))
	cache_ttl_seconds: float = float(os.getenv("PHOTOSTAMP_CACHE_TTL", str(24 * 60 * 60)))

	# Uploaded batches
	batch_ttl_seconds: float = float(os.getenv("PHOTOSTAMP_BATCH_TTL", str(6 * 60 * 60)))

	# Rendering / runtime
	font_path: Optional[str] = os.getenv("PHOTOSTAMP_FONT_PATH") or None
	max_workers: int = int(os.getenv("PHOTOSTAMP_MAX_WORKERS", "4"))
	log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
