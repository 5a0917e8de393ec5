import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from app_utils.constants import (
    CATEGORY_KEYS,
    GEOMETRY_KEY,
    LAT_MAX,
    LAT_MIN,
    LON_MAX,
    LON_MIN,
    NAME_KEY,
    PHOTO_KEY,
    TIMESTAMP_KEYS,
)
from app_utils.errors import MalformedRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportAttributes:
    category: Optional[str] = None
    name: Optional[str] = None
    timestamp: Optional[str] = None
    photo_ref: Optional[str] = None


@dataclass(frozen=True)
class Feature:
    id: int
    coordinate: Tuple[float, float]  # (lon, lat)
    attributes: ReportAttributes

    @property
    def lon(self) -> float:
        return self.coordinate[0]

    @property
    def lat(self) -> float:
        return self.coordinate[1]

    def to_geojson(self, visible: bool = True) -> Dict[str, Any]:
        attrs = self.attributes
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": {"type": "Point", "coordinates": [self.lon, self.lat]},
            "properties": {
                "category": attrs.category,
                "name": attrs.name,
                "timestamp": attrs.timestamp,
                "photo_ref": attrs.photo_ref,
                "visible": visible,
            },
        }


@dataclass(frozen=True)
class FeatureCollection:
    features: Tuple[Feature, ...] = ()
    malformed_count: int = 0
    missing_photo_count: int = 0

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def get(self, feature_id: int) -> Feature:
        # ids are positions
        return self.features[feature_id]


# ---------------------------
# HELPERS
# ---------------------------
def _as_float(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first(record: Dict[str, Any], keys: Iterable[str]):
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _parse_coordinate(index: int, geom) -> Tuple[float, float]:
    """
    Accepts {"lon": x, "lat": y} as served by the catalog, or a GeoJSON Point.
    Returns (lon, lat).
    """
    if not isinstance(geom, dict):
        raise MalformedRecord(index, "missing geometry")

    if "coordinates" in geom:
        coords = geom.get("coordinates")
        if geom.get("type", "Point") != "Point" or not isinstance(coords, (list, tuple)) or len(coords) < 2:
            raise MalformedRecord(index, "geometry is not a point")
        lon, lat = _as_float(coords[0]), _as_float(coords[1])
    else:
        lon, lat = _as_float(geom.get("lon")), _as_float(geom.get("lat"))

    if lon is None or lat is None:
        raise MalformedRecord(index, "missing longitude/latitude")
    if not (LON_MIN <= lon <= LON_MAX and LAT_MIN <= lat <= LAT_MAX):
        raise MalformedRecord(index, f"coordinate out of range ({lon}, {lat})")
    return lon, lat


def _parse_record(index: int, record) -> Tuple[Tuple[float, float], ReportAttributes]:
    if not isinstance(record, dict):
        raise MalformedRecord(index, "record is not an object")

    coordinate = _parse_coordinate(index, record.get(GEOMETRY_KEY))
    attributes = ReportAttributes(
        category=_text(_first(record, CATEGORY_KEYS)),
        name=_text(record.get(NAME_KEY)),
        timestamp=_text(_first(record, TIMESTAMP_KEYS)),
        photo_ref=_text(record.get(PHOTO_KEY)),
    )
    return coordinate, attributes


# ---------------------------
# NORMALIZATION
# ---------------------------
def normalize(raw_records: Iterable[Any]) -> FeatureCollection:
    """
    Turn raw catalog records into canonical point features.

    Records without a usable coordinate are skipped and counted. Output order
    follows input order and ids are the 0-based output positions. Records
    without a photo are kept and counted separately.
    """
    features = []
    malformed = 0
    missing_photo = 0

    for index, record in enumerate(raw_records):
        try:
            coordinate, attributes = _parse_record(index, record)
        except MalformedRecord as e:
            malformed += 1
            logger.debug("Skipping malformed record: %s", e)
            continue

        if attributes.photo_ref is None:
            missing_photo += 1
        features.append(Feature(id=len(features), coordinate=coordinate, attributes=attributes))

    if malformed:
        logger.warning("Skipped %d malformed record(s) without a usable coordinate", malformed)
    if missing_photo:
        logger.info("%d report(s) have no photo reference", missing_photo)

    return FeatureCollection(
        features=tuple(features),
        malformed_count=malformed,
        missing_photo_count=missing_photo,
    )
