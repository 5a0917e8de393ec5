import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Set, Tuple

from app_utils.constants import DEFAULT_CENTER, DEFAULT_ZOOM, TILE_SIZE
from app_utils.filtering import FeatureView

Point = Tuple[float, float]
Projection = Callable[[float, float], Point]

# Web Mercator is undefined at the poles
MAX_SIN_LAT = 0.9999


def world_pixel(lon: float, lat: float, zoom: float, tile_size: int = TILE_SIZE) -> Point:
    """Web Mercator world pixel coordinates at a zoom level (y grows southwards)."""
    scale = tile_size * (2 ** zoom)
    siny = min(max(math.sin(math.radians(lat)), -MAX_SIN_LAT), MAX_SIN_LAT)
    x = (lon + 180.0) / 360.0 * scale
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * scale
    return x, y


@dataclass(frozen=True)
class Viewport:
    """Current pan/zoom state of a map of width x height pixels."""
    center: Point = DEFAULT_CENTER  # (lon, lat)
    zoom: float = DEFAULT_ZOOM
    width: int = 800
    height: int = 600
    tile_size: int = TILE_SIZE

    def project(self, lon: float, lat: float) -> Point:
        """Geographic (lon, lat) to screen pixels, origin top-left."""
        cx, cy = world_pixel(self.center[0], self.center[1], self.zoom, self.tile_size)
        x, y = world_pixel(lon, lat, self.zoom, self.tile_size)
        return x - cx + self.width / 2.0, y - cy + self.height / 2.0


# ---------------------------
# SPATIAL INDEX
# ---------------------------
class SpatialIndex:
    """
    Uniform grid over pixel positions.

    With cell_size equal to the search radius, every position within that
    radius of a query point lies in the 3x3 block of cells around it.
    """

    def __init__(self, cell_size: float):
        if cell_size <= 0:
            raise ValueError("cell_size must be positive")
        self.cell_size = cell_size
        self._cells: Dict[Tuple[int, int], Set[int]] = defaultdict(set)
        self._positions: Dict[int, Point] = {}

    def _cell(self, pos: Point) -> Tuple[int, int]:
        return math.floor(pos[0] / self.cell_size), math.floor(pos[1] / self.cell_size)

    def __len__(self) -> int:
        return len(self._positions)

    def insert(self, key: int, pos: Point) -> None:
        self._positions[key] = pos
        self._cells[self._cell(pos)].add(key)

    def move(self, key: int, pos: Point) -> None:
        old = self._cell(self._positions[key])
        new = self._cell(pos)
        if old != new:
            self._cells[old].discard(key)
            self._cells[new].add(key)
        self._positions[key] = pos

    def position(self, key: int) -> Point:
        return self._positions[key]

    def nearby(self, pos: Point) -> List[int]:
        """Candidate keys around pos; callers still check the exact distance."""
        cx, cy = self._cell(pos)
        found = []
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                found.extend(self._cells.get((cx + dx, cy + dy), ()))
        return found


# ---------------------------
# CLUSTERING
# ---------------------------
@dataclass(frozen=True)
class Cluster:
    position: Point                 # pixel centroid at the viewport it was built for
    coordinate: Point               # mean (lon, lat) of the members
    member_ids: FrozenSet[int]

    @property
    def size(self) -> int:
        return len(self.member_ids)


class _Group:
    """Running sums for one cluster while a pass is being built."""

    def __init__(self, feature_id: int, pixel: Point, coordinate: Point):
        self.ids = [feature_id]
        self._x, self._y = pixel
        self._lon, self._lat = coordinate

    def add(self, feature_id: int, pixel: Point, coordinate: Point) -> None:
        self.ids.append(feature_id)
        self._x += pixel[0]
        self._y += pixel[1]
        self._lon += coordinate[0]
        self._lat += coordinate[1]

    @property
    def centroid(self) -> Point:
        n = len(self.ids)
        return self._x / n, self._y / n

    def freeze(self) -> Cluster:
        n = len(self.ids)
        return Cluster(
            position=self.centroid,
            coordinate=(self._lon / n, self._lat / n),
            member_ids=frozenset(self.ids),
        )


def cluster_features(views: Iterable[FeatureView], project: Projection, distance: float) -> Tuple[Cluster, ...]:
    """
    Greedy proximity clustering in screen space.

    Visible features are taken in ascending id order. Each one joins the
    earliest-created cluster whose running centroid is within `distance`
    pixels, otherwise it starts a new cluster. Output order is creation
    order, so the result only depends on the features, the projection and
    the distance.
    """
    if distance <= 0:
        raise ValueError("Cluster distance must be positive")

    visible = sorted((v.feature for v in views if v.visible), key=lambda f: f.id)

    index = SpatialIndex(distance)
    groups: List[_Group] = []

    for feature in visible:
        pixel = project(feature.lon, feature.lat)

        target = None
        for key in index.nearby(pixel):
            if target is not None and key > target:
                continue
            cx, cy = index.position(key)
            if math.hypot(pixel[0] - cx, pixel[1] - cy) <= distance:
                target = key

        if target is None:
            index.insert(len(groups), pixel)
            groups.append(_Group(feature.id, pixel, feature.coordinate))
        else:
            group = groups[target]
            group.add(feature.id, pixel, feature.coordinate)
            index.move(target, group.centroid)

    return tuple(g.freeze() for g in groups)
