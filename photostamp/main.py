import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from photostamp.config import Settings, settings as default_settings
from photostamp.routers.location import router as location_router
from photostamp.routers.upload_images import router as upload_router
from photostamp.services.cache_store import KeyValueStore
from photostamp.services.place_resolver import PlaceResolver
from photostamp.services.places_provider import GoogleMapsProvider
from photostamp.services.stamp_pipeline import PhotoPipeline, build_cache, build_pipeline
from photostamp.services.status_store import BatchStore


def configure_logging(level: str = "INFO") -> None:
	logging.basicConfig(
		level=getattr(logging, level.upper(), logging.INFO),
		format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
	)


def create_app(
	settings: Optional[Settings] = None,
	pipeline: Optional[PhotoPipeline] = None,
	location_resolver=None,
	cache: Optional[KeyValueStore] = None,
) -> FastAPI:
	settings = settings or default_settings
	cache = cache if cache is not None else build_cache(settings)

	app = FastAPI(title="PhotoStamp - place & date stamping API", version="0.1.0")
	app.state.settings = settings
	app.state.store = BatchStore(ttl_seconds=settings.batch_ttl_seconds)
	app.state.pipeline = pipeline or build_pipeline(settings, cache)
	app.state.location_resolver = location_resolver or PlaceResolver(
		GoogleMapsProvider(settings.google_maps_api_key, language=settings.language, timeout=settings.http_timeout),
		cache,
		ttl_seconds=settings.cache_ttl_seconds,
	)

	# CORS (adjust origins in production)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=False,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	# Routers
	app.include_router(upload_router)
	app.include_router(location_router)

	return app


configure_logging(default_settings.log_level)
app = create_app()


if __name__ == "__main__":
	# Local dev server: uvicorn photostamp.main:app --reload
	import uvicorn

	uvicorn.run("photostamp.main:app", host="0.0.0.0", port=8000, reload=True)
