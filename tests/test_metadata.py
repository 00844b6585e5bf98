from io import BytesIO

import pytest
from PIL import Image
import piexif

from conftest import exif_dict, make_jpeg
from photostamp.errors import MetadataMissing
from photostamp.services.metadata import DATE_UNKNOWN, dms_to_decimal, extract, format_capture_date


def test_dms_to_decimal_north_east_positive():
    assert dms_to_decimal(((35, 1), (30, 1), (0, 1)), b"N") == pytest.approx(35.5)
    assert dms_to_decimal((139, 45, 36), "E") == pytest.approx(139.76)


@pytest.mark.parametrize("ref", [b"S", "S", b"W", "W", "s"])
def test_dms_to_decimal_south_west_negated(ref):
    assert dms_to_decimal((10, 15, 0), ref) == pytest.approx(-10.25)


@pytest.mark.parametrize("dms", [(10, 15), (1, 2, 3, 4), (), None])
def test_dms_to_decimal_malformed_is_zero(dms):
    assert dms_to_decimal(dms, "N") == 0.0


def test_format_capture_date():
    assert format_capture_date(b"2024:05:03 10:20:30") == "2024/05/03"
    assert format_capture_date(b"2019:12:31 23:59:59\x00") == "2019/12/31"
    assert format_capture_date("2019:12:31") == "2019/12/31"


@pytest.mark.parametrize("raw", [b"", "    :  :     :  :  ", "not a date", "2024:13:45 00:00:00", None])
def test_format_capture_date_unknown(raw):
    assert format_capture_date(raw) == DATE_UNKNOWN


def test_extract_full(tokyo_jpeg):
    meta = extract(tokyo_jpeg)
    assert meta.coordinate.latitude == pytest.approx(35.6586, abs=1e-6)
    assert meta.coordinate.longitude == pytest.approx(139.7454, abs=1e-6)
    assert meta.capture_date == "2024/05/03"
    assert meta.orientation == 1


def test_extract_southern_western_hemisphere():
    data = make_jpeg(exif_dict=exif_dict(lat_ref=b"S", lng_ref=b"W"))
    meta = extract(data)
    assert meta.coordinate.latitude < 0
    assert meta.coordinate.longitude < 0


def test_extract_orientation():
    meta = extract(make_jpeg(exif_dict=exif_dict(orientation=6)))
    assert meta.orientation == 6


def test_extract_out_of_range_orientation_defaults_to_one():
    meta = extract(make_jpeg(exif_dict=exif_dict(orientation=9)))
    assert meta.orientation == 1


def test_extract_without_gps_has_no_coordinate(no_gps_jpeg):
    meta = extract(no_gps_jpeg)
    assert meta.coordinate is None
    assert meta.capture_date == "2024/05/03"


def test_extract_without_date():
    meta = extract(make_jpeg(exif_dict=exif_dict(date=None)))
    assert meta.capture_date == DATE_UNKNOWN
    assert meta.coordinate is not None


def test_extract_falls_back_to_datetime_tag():
    d = exif_dict(date=None)
    d["0th"][piexif.ImageIFD.DateTime] = b"2020:01:02 03:04:05"
    assert extract(make_jpeg(exif_dict=d)).capture_date == "2020/01/02"


def test_extract_no_exif_raises(plain_jpeg):
    with pytest.raises(MetadataMissing):
        extract(plain_jpeg)


def test_extract_not_an_image_raises():
    with pytest.raises(MetadataMissing):
        extract(b"definitely not a photo")


def test_extract_png_with_exif():
    buf = BytesIO()
    Image.new("RGB", (20, 10), "blue").save(buf, format="PNG", exif=piexif.dump(exif_dict()))
    meta = extract(buf.getvalue())
    assert meta.coordinate.latitude == pytest.approx(35.6586, abs=1e-6)
