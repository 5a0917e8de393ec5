from io import BytesIO

import pytest
from PIL import Image

from app_utils.exif import (
    _convert_to_degrees,
    _parse_gps_position_string,
    _parse_semicolon_coords,
    read_image_info,
)


def _jpeg(width, height):
    buf = BytesIO()
    Image.new("RGB", (width, height)).save(buf, format="JPEG")
    return buf.getvalue()


def test_read_image_info_without_gps():
    info = read_image_info(_jpeg(12, 7))
    assert info == {
        "width": 12,
        "height": 7,
        "content_type": "image/jpeg",
        "latitude": None,
        "longitude": None,
    }


def test_read_image_info_rejects_non_images():
    with pytest.raises(ValueError):
        read_image_info(b"definitely not an image")


def test_convert_rational_triples():
    assert _convert_to_degrees(((21, 1), (6, 1), (5436, 100))) == pytest.approx(21.1151, abs=1e-4)
    assert _convert_to_degrees((21.0, 6.0, 54.36)) == pytest.approx(21.1151, abs=1e-4)
    assert _convert_to_degrees("garbage") is None


def test_parse_semicolon_coords():
    assert _parse_semicolon_coords("55; 32; 11.04") == pytest.approx(55.5364, abs=1e-4)
    assert _parse_semicolon_coords("55; 32") is None
    assert _parse_semicolon_coords("a; b; c") is None


def test_parse_gps_position_string():
    gps = _parse_gps_position_string("21 deg 6' 54.36\" S, 55 deg 32' 11.04\" E")
    assert gps["latitude"] == pytest.approx(-21.1151, abs=1e-4)
    assert gps["longitude"] == pytest.approx(55.5364, abs=1e-4)
    assert _parse_gps_position_string("nowhere") is None
