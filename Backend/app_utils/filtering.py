from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from app_utils.normalize import Feature


@dataclass(frozen=True)
class FilterPredicate:
    """Category/keyword filter. Empty fields match everything."""
    category: Optional[str] = None
    keyword: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.category and not self.keyword

    def matches(self, feature: Feature) -> bool:
        attrs = feature.attributes
        if self.category and attrs.category != self.category:
            return False
        # case-sensitive substring
        if self.keyword and (attrs.name is None or self.keyword not in attrs.name):
            return False
        return True


@dataclass(frozen=True)
class FeatureView:
    """A feature plus its visibility under the current predicate."""
    feature: Feature
    visible: bool


def apply_filter(features: Iterable[Feature], predicate: FilterPredicate) -> Tuple[FeatureView, ...]:
    """Annotate every feature with visibility. Nothing is dropped."""
    if predicate.is_empty:
        return tuple(FeatureView(f, True) for f in features)
    return tuple(FeatureView(f, predicate.matches(f)) for f in features)


def visible_ids(views: Iterable[FeatureView]) -> List[int]:
    return [v.feature.id for v in views if v.visible]


def category_counts(features: Iterable[Feature]) -> List[Tuple[str, int]]:
    """Distinct categories with report counts, sorted by category."""
    counts = Counter(f.attributes.category for f in features if f.attributes.category)
    return sorted(counts.items())
