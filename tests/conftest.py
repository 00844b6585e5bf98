from io import BytesIO

import piexif
import pytest
from PIL import Image

# Tokyo Tower vicinity: 35.6586 N, 139.7454 E
TOKYO_LAT = ((35, 1), (39, 1), (3096, 100))
TOKYO_LNG = ((139, 1), (44, 1), (4344, 100))


def make_jpeg(size=(80, 60), color="red", exif_dict=None):
    buf = BytesIO()
    img = Image.new("RGB", size, color)
    if exif_dict is None:
        img.save(buf, format="JPEG")
    else:
        img.save(buf, format="JPEG", exif=piexif.dump(exif_dict))
    return buf.getvalue()


def exif_dict(gps=True, date=b"2024:05:03 10:20:30", orientation=None, lat_ref=b"N", lng_ref=b"E"):
    d = {"0th": {}, "Exif": {}, "GPS": {}, "1st": {}, "thumbnail": None}
    if gps:
        d["GPS"] = {
            piexif.GPSIFD.GPSLatitudeRef: lat_ref,
            piexif.GPSIFD.GPSLatitude: TOKYO_LAT,
            piexif.GPSIFD.GPSLongitudeRef: lng_ref,
            piexif.GPSIFD.GPSLongitude: TOKYO_LNG,
        }
    if date is not None:
        d["Exif"][piexif.ExifIFD.DateTimeOriginal] = date
    if orientation is not None:
        d["0th"][piexif.ImageIFD.Orientation] = orientation
    return d


@pytest.fixture
def tokyo_jpeg():
    return make_jpeg(exif_dict=exif_dict())


@pytest.fixture
def no_gps_jpeg():
    return make_jpeg(exif_dict=exif_dict(gps=False))


@pytest.fixture
def plain_jpeg():
    return make_jpeg()


class FakeProvider:
    """Stands in for GoogleMapsProvider and records calls."""

    def __init__(self, places=None, geocode=None, error=None):
        self.places = places or []
        self.geocode = geocode or geocode_payload()
        self.error = error
        self.calls = []

    def search_nearby(self, coordinate, **kwargs):
        self.calls.append(("search_nearby", coordinate, kwargs))
        if self.error:
            raise self.error
        return self.places

    def reverse_geocode(self, coordinate):
        self.calls.append(("reverse_geocode", coordinate))
        if self.error:
            raise self.error
        return self.geocode


def component(name, *types):
    return {"long_name": name, "short_name": name, "types": list(types)}


def geocode_payload(components=None, status="OK"):
    if components is None:
        components = [
            component("4丁目", "sublocality_level_4", "sublocality", "political"),
            component("芝公園", "sublocality_level_1", "sublocality", "political"),
            component("港区", "locality", "political"),
            component("東京都", "administrative_area_level_1", "political"),
            component("日本", "country", "political"),
        ]
    results = [{"address_components": components, "formatted_address": ""}] if components else []
    return {"status": status, "results": results}


def place(name, lat, lng, reviews=200, types=("tourist_attraction", "point_of_interest")):
    return {
        "displayName": {"text": name, "languageCode": "ja"},
        "types": list(types),
        "userRatingCount": reviews,
        "location": {"latitude": lat, "longitude": lng},
    }
