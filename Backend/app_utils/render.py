"""
Render primitives for the map canvas.

Clusters of one report become markers, larger ones become count badges.
Primitives are listed in draw order; the last one drawn is on top, so hit
testing walks the list backwards.
"""
from dataclasses import dataclass
from html import escape
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

from app_utils.constants import BADGE_RADIUS, MARKER_ICON_ANCHOR, MARKER_ICON_SIZE
from app_utils.geo import Cluster
from app_utils.normalize import Feature

MARKER = "marker"
BADGE = "badge"

# Names listed in a badge popup before "and N more"
POPUP_NAME_LIMIT = 10


@dataclass(frozen=True)
class Bounds:
    left: float
    top: float
    right: float
    bottom: float

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class RenderPrimitive:
    kind: str
    position: Tuple[float, float]
    bounds: Bounds
    member_ids: Tuple[int, ...]
    popup: str
    label: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.member_ids)

    def to_dict(self) -> Dict[str, Any]:
        b = self.bounds
        return {
            "kind": self.kind,
            "x": self.position[0],
            "y": self.position[1],
            "bounds": {"left": b.left, "top": b.top, "right": b.right, "bottom": b.bottom},
            "member_ids": list(self.member_ids),
            "size": self.size,
            "label": self.label,
            "popup": self.popup,
        }


def photo_url(photo_ref: str) -> str:
    return f"/image/{quote(photo_ref)}"


def feature_popup(feature: Feature) -> str:
    attrs = feature.attributes
    parts = [f"<strong>{escape(attrs.name or 'Unnamed report')}</strong>"]
    if attrs.category:
        parts.append(f"<div>{escape(attrs.category)}</div>")
    if attrs.timestamp:
        parts.append(f"<div>{escape(attrs.timestamp)}</div>")
    if attrs.photo_ref:
        parts.append(f'<img src="{escape(photo_url(attrs.photo_ref))}" alt="{escape(attrs.photo_ref)}">')
    return "".join(parts)


def cluster_popup(features: Sequence[Feature]) -> str:
    names = [escape(f.attributes.name or "Unnamed report") for f in features[:POPUP_NAME_LIMIT]]
    items = "".join(f"<li>{n}</li>" for n in names)
    more = len(features) - len(names)
    tail = f"<div>and {more} more</div>" if more > 0 else ""
    return f"<strong>{len(features)} reports</strong><ul>{items}</ul>{tail}"


def _marker_bounds(x: float, y: float) -> Bounds:
    w, h = MARKER_ICON_SIZE
    ax, ay = MARKER_ICON_ANCHOR
    return Bounds(left=x - ax, top=y - ay, right=x - ax + w, bottom=y - ay + h)


def _badge_bounds(x: float, y: float) -> Bounds:
    r = BADGE_RADIUS
    return Bounds(left=x - r, top=y - r, right=x + r, bottom=y + r)


def build_primitives(clusters: Sequence[Cluster], lookup: Callable[[int], Feature]) -> Tuple[RenderPrimitive, ...]:
    """One primitive per cluster, in draw order."""
    primitives = []
    for cluster in clusters:
        x, y = cluster.position
        ids = tuple(sorted(cluster.member_ids))
        members = [lookup(i) for i in ids]
        if cluster.size == 1:
            primitives.append(RenderPrimitive(
                kind=MARKER,
                position=(x, y),
                bounds=_marker_bounds(x, y),
                member_ids=ids,
                popup=feature_popup(members[0]),
            ))
        else:
            primitives.append(RenderPrimitive(
                kind=BADGE,
                position=(x, y),
                bounds=_badge_bounds(x, y),
                member_ids=ids,
                popup=cluster_popup(members),
                label=str(cluster.size),
            ))
    return tuple(primitives)


def hit_test(primitives: Sequence[RenderPrimitive], x: float, y: float) -> List[RenderPrimitive]:
    """Primitives under the pixel, topmost first."""
    return [p for p in reversed(primitives) if p.bounds.contains(x, y)]


def resolve_click(primitives: Sequence[RenderPrimitive], x: float, y: float) -> Optional[RenderPrimitive]:
    hits = hit_test(primitives, x, y)
    return hits[0] if hits else None
