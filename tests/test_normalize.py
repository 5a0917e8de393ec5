import math

import pytest

from app_utils.normalize import Feature, FeatureCollection, ReportAttributes, normalize
from conftest import make_record


def test_order_preserving_and_ids_contiguous():
    raw = [make_record(i, lon=55.0 + i / 100) for i in range(10)]
    raw[2].pop("geom")
    raw[7]["geom"] = {"lon": 55.1}

    collection = normalize(raw)

    assert len(collection) == 8
    assert collection.malformed_count == 2
    assert [f.id for f in collection] == list(range(8))
    assert [f.attributes.photo_ref for f in collection] == [
        f"photo_{i}.jpg" for i in (0, 1, 3, 4, 5, 6, 8, 9)
    ]


def test_coordinate_is_lon_lat():
    collection = normalize([make_record(0, lon=55.53, lat=-21.11)])
    feature = collection.get(0)
    assert feature.coordinate == (55.53, -21.11)
    assert feature.lon == 55.53
    assert feature.lat == -21.11


def test_attributes_are_mapped():
    collection = normalize([make_record(3, category="encombrants", name="Sofa by the road")])
    attrs = collection.get(0).attributes
    assert attrs == ReportAttributes(
        category="encombrants",
        name="Sofa by the road",
        timestamp="2024-03-01T10:00:00+00:00",
        photo_ref="photo_3.jpg",
    )


def test_category_and_timestamp_fallback_keys():
    raw = {"geom": {"lon": 1, "lat": 2}, "category": "shop", "timestamp": "yesterday", "image_name": "a.jpg"}
    attrs = normalize([raw]).get(0).attributes
    assert attrs.category == "shop"
    assert attrs.timestamp == "yesterday"


def test_geojson_point_geometry_is_accepted():
    raw = {"geom": {"type": "Point", "coordinates": [55.2, -21.0]}, "image_name": "x.jpg"}
    assert normalize([raw]).get(0).coordinate == (55.2, -21.0)


@pytest.mark.parametrize("geom", [
    None,
    "55.5,-21.1",
    {},
    {"lon": "55.5", "lat": "-21.1"},
    {"lon": True, "lat": -21.1},
    {"lon": math.nan, "lat": -21.1},
    {"lon": 200.0, "lat": -21.1},
    {"lon": 55.5, "lat": -95.0},
    {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
    {"type": "Point", "coordinates": [55.5]},
])
def test_bad_coordinates_are_skipped(geom):
    raw = [make_record(0), dict(make_record(1), geom=geom)]
    collection = normalize(raw)
    assert len(collection) == 1
    assert collection.malformed_count == 1


def test_non_dict_record_is_skipped():
    collection = normalize([None, 42, make_record(0)])
    assert len(collection) == 1
    assert collection.malformed_count == 2
    assert collection.get(0).id == 0


def test_missing_photo_is_kept_and_counted():
    raw = make_record(0)
    raw.pop("image_name")
    collection = normalize([raw])
    assert len(collection) == 1
    assert collection.missing_photo_count == 1
    assert collection.get(0).attributes.photo_ref is None


def test_empty_input_is_empty_collection():
    collection = normalize([])
    assert collection == FeatureCollection()
    assert len(collection) == 0


def test_features_are_immutable():
    feature = normalize([make_record(0)]).get(0)
    with pytest.raises(AttributeError):
        feature.id = 5


def test_to_geojson():
    feature = Feature(id=4, coordinate=(1.5, 2.5), attributes=ReportAttributes(name="n", photo_ref="p.jpg"))
    out = feature.to_geojson(visible=False)
    assert out["geometry"] == {"type": "Point", "coordinates": [1.5, 2.5]}
    assert out["id"] == 4
    assert out["properties"]["visible"] is False
    assert out["properties"]["photo_ref"] == "p.jpg"
