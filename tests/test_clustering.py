import math

import pytest

from src.dispatch.models.domain import ClusteringConfig, Coordinates, Order, TuningState
from src.dispatch.services.clustering.base import clustering_stats, resolve_angle_span, to_polar
from src.dispatch.services.clustering.dispatcher import cluster_orders, get_strategy
from src.dispatch.services.clustering.distance import DistanceBandClustering, HybridClustering
from src.dispatch.services.clustering.kmeans import KMeansClustering
from src.dispatch.services.clustering.polar import PolarSweepClustering

DEPOT = Coordinates(lng=120.9427, lat=31.3256)


def _at(order_id: str, bearing: float, distance_km: float, weight: float = 500.0) -> Order:
    rad = math.radians(bearing)
    lat = DEPOT.lat + distance_km * math.cos(rad) / 111.0
    lng = DEPOT.lng + distance_km * math.sin(rad) / (111.0 * math.cos(math.radians(DEPOT.lat)))
    return Order(order_id=order_id, weight_kg=weight, coordinates=Coordinates(lng=lng, lat=lat))


def _ids(cluster) -> set[str]:
    return {order.order_id for order in cluster.orders}


def test_sweep_splits_when_span_exceeded():
    orders = [_at("A", 10, 5), _at("B", 30, 8), _at("C", 100, 6), _at("D", 120, 7)]

    clusters = PolarSweepClustering().generate(depot=DEPOT, orders=orders)

    assert [cluster.id for cluster in clusters] == ["C01", "C02"]
    assert _ids(clusters[0]) == {"A", "B"}
    assert _ids(clusters[1]) == {"C", "D"}


def test_sweep_assigns_every_order_exactly_once():
    orders = [_at(f"O{i}", bearing=i * 17 % 360, distance_km=3 + i % 5) for i in range(40)]

    clusters = cluster_orders(orders, DEPOT)

    seen = [order.order_id for cluster in clusters for order in cluster.orders]
    assert sorted(seen) == sorted(order.order_id for order in orders)


def test_sweep_does_not_merge_across_north():
    # Known limitation: orders either side of 0 degrees start separate clusters.
    orders = [_at("EAST_OF_NORTH", 2, 5), _at("WEST_OF_NORTH", 358, 5)]

    clusters = PolarSweepClustering().generate(depot=DEPOT, orders=orders)

    assert len(clusters) == 2


def test_orders_without_coordinates_are_ignored():
    orders = [_at("A", 45, 5), Order(order_id="NOWHERE", weight_kg=100, coordinates=None)]

    clusters = cluster_orders(orders, DEPOT)

    assert [_ids(cluster) for cluster in clusters] == [{"A"}]


def test_preset_and_explicit_span():
    assert resolve_angle_span(None) == pytest.approx(45.0)
    assert resolve_angle_span(ClusteringConfig(preset="long_haul")) == pytest.approx(90.0)
    assert resolve_angle_span(ClusteringConfig(preset="urban", max_angle_span=30)) == pytest.approx(30.0)

    orders = [_at("A", 10, 5), _at("B", 80, 5)]
    assert len(cluster_orders(orders, DEPOT, ClusteringConfig(preset="long_haul"))) == 1
    assert len(cluster_orders(orders, DEPOT)) == 2


def test_cluster_bias_widens_span_and_caps_at_full_circle():
    assert resolve_angle_span(None, TuningState(cluster_bias=0.5)) == pytest.approx(90.0)
    assert resolve_angle_span(ClusteringConfig(max_angle_span=300), TuningState(cluster_bias=1.0)) == 360.0


def test_cluster_descriptive_fields():
    orders = [_at("A", 90, 10), _at("B", 90, 20)]

    (cluster,) = PolarSweepClustering().generate(depot=DEPOT, orders=orders)

    assert cluster.center_lat == pytest.approx(sum(o.coordinates.lat for o in orders) / 2)
    assert cluster.center_lng == pytest.approx(sum(o.coordinates.lng for o in orders) / 2)
    assert cluster.avg_angle == pytest.approx(90.0, abs=1.0)
    assert cluster.avg_distance_km == pytest.approx(15.0, rel=0.02)


def test_distance_bands():
    orders = [_at("NEAR", 10, 10), _at("MID", 10, 50), _at("FAR", 200, 100), _at("BEYOND", 300, 200)]

    clusters = DistanceBandClustering().generate(depot=DEPOT, orders=orders)

    assert {cluster.id: _ids(cluster) for cluster in clusters} == {
        "NEAR": {"NEAR"},
        "MID": {"MID"},
        "FAR": {"FAR"},
        "VERY_FAR": {"BEYOND"},
    }


def test_hybrid_sweeps_crowded_bands_only():
    near = [_at(f"N{i}", bearing, 10) for i, bearing in enumerate((5, 15, 100, 110))]
    far = [_at("F0", 200, 100)]

    clusters = HybridClustering().generate(depot=DEPOT, orders=near + far, config=ClusteringConfig(method="hybrid"))

    ids = [cluster.id for cluster in clusters]
    assert ids == ["NEAR_C01", "NEAR_C02", "FAR_C01"]
    assert _ids(clusters[0]) == {"N0", "N1"}


def test_kmeans_separates_distant_groups():
    west = [_at(f"W{i}", 270 + i, 20 + i) for i in range(8)]
    east = [_at(f"E{i}", 90 + i, 20 + i) for i in range(8)]

    clusters = KMeansClustering(orders_per_cluster=8).generate(depot=DEPOT, orders=west + east)

    groups = sorted(_ids(cluster) for cluster in clusters)
    assert len(clusters) == 2
    assert {frozenset(group) for group in groups} == {
        frozenset(o.order_id for o in west),
        frozenset(o.order_id for o in east),
    }
    # ids follow the average bearing so east (about 90 degrees) comes first
    assert _ids(clusters[0]) == {o.order_id for o in east}


def test_kmeans_is_deterministic():
    orders = [_at(f"O{i}", bearing=(i * 37) % 360, distance_km=5 + i) for i in range(30)]
    strategy = get_strategy("kmeans", orders_per_cluster=6)

    first = [sorted(_ids(c)) for c in strategy.generate(depot=DEPOT, orders=orders)]
    second = [sorted(_ids(c)) for c in strategy.generate(depot=DEPOT, orders=orders)]

    assert first == second


def test_get_strategy_rejects_unknown_method():
    with pytest.raises(ValueError):
        get_strategy("isochrone")


def test_clustering_stats():
    orders = [_at("A", 10, 5), _at("B", 20, 15), _at("C", 200, 10)]
    clusters = cluster_orders(orders, DEPOT)

    stats = clustering_stats(clusters)

    assert stats["total_clusters"] == 2
    assert stats["total_orders"] == 3
    assert stats["avg_orders_per_cluster"] == 1.5
    assert clustering_stats([])["avg_cluster_distance_km"] == 0.0


def test_to_polar_bearings_cover_compass():
    polar = to_polar([_at("N", 1, 10), _at("E", 90, 10), _at("S", 180, 10), _at("W", 270, 10)], DEPOT)

    assert [round(item.angle) for item in polar] == [1, 90, 180, 270]
