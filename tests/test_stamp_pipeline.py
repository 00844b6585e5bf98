from io import BytesIO
from unittest.mock import Mock

import pytest
from PIL import Image

from conftest import FakeProvider, make_jpeg, exif_dict, place
from photostamp.errors import InvalidTransition, ResolutionFailed
from photostamp.models import CaptureMetadata, GeoCoordinate, PhotoTask
from photostamp.services.cache_store import MemoryStore
from photostamp.services.place_resolver import LocationServiceResolver, PlaceResolver
from photostamp.services.stamp_pipeline import PhotoPipeline, run_batch, suggest_filename
from photostamp.services.state_machine import ProcessingStatus


def tokyo_tower_provider():
    # candidate ~80 m north of the photo, 200 reviews
    return FakeProvider(places=[place("東京タワー", 35.65932, 139.7454, reviews=200)])


class StaticResolver:
    def __init__(self, location="Paris"):
        self.location = location
        self.calls = 0

    def resolve(self, coordinate):
        self.calls += 1
        return self.location


def test_suggest_filename():
    assert suggest_filename("Paris Eiffel Tower", "2024/05/03") == "paris_eiffel_tower_2024-05-03.jpg"
    assert suggest_filename("東京都 港区", "2024/05/03") == "_______2024-05-03.jpg"


def test_scenario_attraction_name_is_stamped(tokyo_jpeg):
    provider = tokyo_tower_provider()
    task = PhotoTask(filename="tower.jpg", data=tokyo_jpeg)
    PhotoPipeline(PlaceResolver(provider, MemoryStore())).run(task)

    assert task.status is ProcessingStatus.READY, task.error_message
    assert task.location_text == "東京都 港区 東京タワー"
    assert task.stamp_text == "東京都 港区 東京タワー 2024/05/03"
    assert task.result_image.text == task.stamp_text
    assert "芝公園" not in task.stamp_text
    assert task.suggested_filename.endswith("_2024-05-03.jpg")
    assert Image.open(BytesIO(task.result_image.data)).size == (80, 60)


def test_scenario_no_gps_fails_without_network(no_gps_jpeg):
    provider = FakeProvider()
    task = PhotoTask(filename="indoor.jpg", data=no_gps_jpeg)
    PhotoPipeline(PlaceResolver(provider, MemoryStore())).run(task)

    assert task.status is ProcessingStatus.ERROR
    assert "GPS" in task.error_message
    assert provider.calls == []
    assert task.result_image is None


def test_scenario_server_error_message_is_surfaced(tokyo_jpeg):
    response = Mock(status_code=500, ok=False)
    response.json.return_value = {"error": "Geocoding failed: REQUEST_DENIED"}
    session = Mock()
    session.get.return_value = response
    resolver = LocationServiceResolver("http://stamp.local", MemoryStore(), session=session)

    task = PhotoTask(filename="tower.jpg", data=tokyo_jpeg)
    PhotoPipeline(resolver).run(task)

    assert task.status is ProcessingStatus.ERROR
    assert task.error_message == "Geocoding failed: REQUEST_DENIED"


def test_missing_exif_fails_in_reading(plain_jpeg):
    task = PhotoTask(filename="plain.jpg", data=plain_jpeg)
    resolver = StaticResolver()
    PhotoPipeline(resolver).run(task)
    assert task.status is ProcessingStatus.ERROR
    assert "EXIF" in task.error_message
    assert resolver.calls == 0


def test_undecodable_image_fails_in_drawing():
    meta = CaptureMetadata(coordinate=GeoCoordinate(1.0, 2.0), capture_date="2024/05/03")
    task = PhotoTask(filename="broken.jpg", data=b"garbage")
    PhotoPipeline(StaticResolver(), extract=lambda data: meta).run(task)
    assert task.status is ProcessingStatus.ERROR
    assert task.location_text == "Paris"
    assert task.result_image is None


def test_unexpected_error_is_contained(tokyo_jpeg):
    resolver = Mock()
    resolver.resolve.side_effect = RuntimeError("boom")
    task = PhotoTask(filename="x.jpg", data=tokyo_jpeg)
    PhotoPipeline(resolver).run(task)
    assert task.status is ProcessingStatus.ERROR
    assert task.error_message == "boom"


def test_rerunning_a_finished_task_is_rejected(tokyo_jpeg):
    task = PhotoTask(filename="x.jpg", data=tokyo_jpeg)
    pipeline = PhotoPipeline(StaticResolver())
    pipeline.run(task)
    assert task.status is ProcessingStatus.READY
    with pytest.raises(InvalidTransition):
        pipeline.run(task)


def test_rotated_photo_gets_rotated_output():
    data = make_jpeg(size=(80, 60), exif_dict=exif_dict(orientation=6))
    task = PhotoTask(filename="portrait.jpg", data=data)
    PhotoPipeline(StaticResolver()).run(task)
    assert (task.result_image.width, task.result_image.height) == (60, 80)


def test_batch_failures_are_isolated(tokyo_jpeg, no_gps_jpeg, plain_jpeg):
    provider = tokyo_tower_provider()
    cache = MemoryStore()
    tasks = [
        PhotoTask(filename="a.jpg", data=tokyo_jpeg),
        PhotoTask(filename="b.jpg", data=no_gps_jpeg),
        PhotoTask(filename="c.jpg", data=plain_jpeg),
        PhotoTask(filename="d.jpg", data=b"not an image"),
    ]
    run_batch(PhotoPipeline(PlaceResolver(provider, cache)), tasks, max_workers=4)

    statuses = {t.filename: t.status for t in tasks}
    assert statuses == {
        "a.jpg": ProcessingStatus.READY,
        "b.jpg": ProcessingStatus.ERROR,
        "c.jpg": ProcessingStatus.ERROR,
        "d.jpg": ProcessingStatus.ERROR,
    }


def test_batch_shares_location_cache(tokyo_jpeg):
    provider = tokyo_tower_provider()
    pipeline = PhotoPipeline(PlaceResolver(provider, MemoryStore()))
    first = run_batch(pipeline, [PhotoTask(filename="a.jpg", data=tokyo_jpeg)])
    second = run_batch(pipeline, [PhotoTask(filename="b.jpg", data=tokyo_jpeg)])
    assert first[0].status is second[0].status is ProcessingStatus.READY
    # one nearby search + one reverse geocode, only for the first run
    assert len(provider.calls) == 2


def test_resolution_failure_message_is_kept(tokyo_jpeg):
    provider = FakeProvider(error=ResolutionFailed("Geocoding API request failed: 503"))
    task = PhotoTask(filename="a.jpg", data=tokyo_jpeg)
    PhotoPipeline(PlaceResolver(provider, MemoryStore())).run(task)
    assert task.error_message == "Geocoding API request failed: 503"
