import pytest

from app_utils.filtering import FilterPredicate, FeatureView, apply_filter
from app_utils.geo import SpatialIndex, Viewport, cluster_features, world_pixel
from app_utils.normalize import Feature, ReportAttributes


def identity(lon, lat):
    return lon, lat


def _features(points, category=None):
    return [
        Feature(id=i, coordinate=p, attributes=ReportAttributes(category=category, name=f"r{i}"))
        for i, p in enumerate(points)
    ]


# three tight blobs far apart, in pixel units
BLOBS = [(0, 0), (1, 0), (0, 1), (100, 0), (101, 0), (100, 1), (300, 0), (301, 1)]


def _all_visible(features):
    return apply_filter(features, FilterPredicate())


def test_blobs_form_one_cluster_each():
    clusters = cluster_features(_all_visible(_features(BLOBS)), identity, 2)
    assert [sorted(c.member_ids) for c in clusters] == [[0, 1, 2], [3, 4, 5], [6, 7]]
    assert [c.size for c in clusters] == [3, 3, 2]
    assert clusters[0].position == pytest.approx((1 / 3, 1 / 3))


def test_clustering_is_deterministic():
    views = _all_visible(_features(BLOBS))
    first = cluster_features(views, identity, 40)
    second = cluster_features(views, identity, 40)
    assert first == second
    assert [c.position for c in first] == [c.position for c in second]


def test_grouping_follows_id_order_not_input_order():
    views = _all_visible(_features(BLOBS))
    shuffled = tuple(reversed(views))
    assert cluster_features(shuffled, identity, 2) == cluster_features(views, identity, 2)


def test_larger_distance_never_adds_clusters():
    views = _all_visible(_features(BLOBS))
    counts = [len(cluster_features(views, identity, d)) for d in (0.5, 2, 50, 150, 400)]
    assert counts == [8, 3, 3, 2, 1]
    assert counts == sorted(counts, reverse=True)


def test_running_centroid_decides_membership():
    # 0 and 10 merge (centroid 5); 19 is 14 away from it and starts a new cluster
    clusters = cluster_features(_all_visible(_features([(0, 0), (10, 0), (19, 0)])), identity, 10)
    assert [sorted(c.member_ids) for c in clusters] == [[0, 1], [2]]
    assert clusters[0].position == (5.0, 0.0)


def test_joins_earliest_cluster_within_distance():
    # 2 is within reach of both clusters; it joins the one created first
    points = [(0, 0), (20, 0), (10, 0)]
    clusters = cluster_features(_all_visible(_features(points)), identity, 10)
    assert [sorted(c.member_ids) for c in clusters] == [[0, 2], [1]]


def test_hidden_features_are_not_clustered():
    features = _features([(0, 0), (1, 1), (2, 2)])
    views = (FeatureView(features[0], True), FeatureView(features[1], False), FeatureView(features[2], True))
    clusters = cluster_features(views, identity, 5)
    assert len(clusters) == 1
    assert clusters[0].member_ids == frozenset({0, 2})


def test_no_visible_features_gives_no_clusters():
    features = _features([(0, 0)])
    assert cluster_features((FeatureView(features[0], False),), identity, 5) == ()


@pytest.mark.parametrize("distance", [0, -1])
def test_non_positive_distance_is_rejected(distance):
    with pytest.raises(ValueError):
        cluster_features(_all_visible(_features(BLOBS)), identity, distance)


def test_cluster_coordinate_is_geographic_mean():
    features = _features([(55.0, -21.0), (55.2, -21.2)])
    clusters = cluster_features(_all_visible(features), identity, 1)
    assert clusters[0].coordinate == pytest.approx((55.1, -21.1))


def test_zooming_in_splits_clusters():
    # two reports ~1 km apart in Saint-Denis
    features = _features([(55.4500, -20.8800), (55.4600, -20.8800)])
    views = _all_visible(features)
    far = Viewport(center=(55.45, -20.88), zoom=10, width=800, height=600)
    near = Viewport(center=(55.45, -20.88), zoom=16, width=800, height=600)

    assert len(cluster_features(views, far.project, 40)) == 1
    assert len(cluster_features(views, near.project, 40)) == 2


# ---------------------------
# Projection
# ---------------------------
def test_viewport_center_projects_to_screen_middle():
    vp = Viewport(center=(55.5364, -21.1151), zoom=10, width=800, height=600)
    assert vp.project(55.5364, -21.1151) == pytest.approx((400.0, 300.0))


def test_projection_axes():
    vp = Viewport(center=(0.0, 0.0), zoom=2, width=100, height=100)
    east = vp.project(10.0, 0.0)
    north = vp.project(0.0, 10.0)
    assert east[0] > 50 and east[1] == pytest.approx(50)
    assert north[1] < 50 and north[0] == pytest.approx(50)


def test_world_pixel_at_zoom_zero():
    assert world_pixel(-180.0, 0.0, 0) == pytest.approx((0.0, 128.0))
    assert world_pixel(0.0, 0.0, 0) == pytest.approx((128.0, 128.0))


# ---------------------------
# Spatial index
# ---------------------------
def test_spatial_index_nearby_covers_radius():
    index = SpatialIndex(10)
    index.insert(0, (0, 0))
    index.insert(1, (9.9, 9.9))
    index.insert(2, (25, 0))

    assert sorted(index.nearby((5, 5))) == [0, 1]
    index.move(2, (8, 8))
    assert sorted(index.nearby((5, 5))) == [0, 1, 2]
    assert index.position(2) == (8, 8)
    assert len(index) == 3


def test_spatial_index_rejects_bad_cell_size():
    with pytest.raises(ValueError):
        SpatialIndex(0)
