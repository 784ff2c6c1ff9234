"""Base classes for clustering strategy implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from shapely.geometry import MultiPoint

from ...config import settings
from ...models.domain import ClusteringConfig, Coordinates, Order, OrderCluster, TuningState
from ..geospatial import bearing_degrees, haversine_km

CLUSTERING_PRESETS: dict[str, dict] = {
    "urban": {"max_angle_span": 45.0, "distance_thresholds": (15.0, 40.0, 80.0)},
    "suburban": {"max_angle_span": 60.0, "distance_thresholds": (30.0, 80.0, 150.0)},
    "long_haul": {"max_angle_span": 90.0, "distance_thresholds": (50.0, 150.0, 300.0)},
    "custom": {"max_angle_span": 60.0, "distance_thresholds": (30.0, 80.0, 150.0)},
}


@dataclass(slots=True)
class PolarOrder:
    order: Order
    angle: float
    distance_km: float


class ClusteringStrategy(ABC):
    """Contract for clustering strategy implementations."""

    @abstractmethod
    def generate(
        self,
        *,
        depot: Coordinates,
        orders: Sequence[Order],
        config: ClusteringConfig | None = None,
        tuning: TuningState | None = None,
    ) -> list[OrderCluster]:
        raise NotImplementedError


def resolve_angle_span(config: ClusteringConfig | None, tuning: TuningState | None = None) -> float:
    """Sweep span in degrees, widened by the tuning cluster bias."""

    span = settings.cluster_max_angle_span
    if config is not None:
        if config.max_angle_span:
            span = config.max_angle_span
        elif config.preset:
            span = CLUSTERING_PRESETS[config.preset]["max_angle_span"]
    bias = tuning.cluster_bias if tuning else 0.0
    return min(360.0, span * (1 + bias * 2))


def resolve_distance_thresholds(config: ClusteringConfig | None) -> tuple[float, ...]:
    if config is not None:
        if config.distance_thresholds:
            return tuple(config.distance_thresholds)
        if config.preset:
            return CLUSTERING_PRESETS[config.preset]["distance_thresholds"]
    return settings.cluster_distance_thresholds


def to_polar(orders: Sequence[Order], depot: Coordinates) -> list[PolarOrder]:
    """Bearing and distance of every located order relative to the depot."""

    return [
        PolarOrder(
            order=order,
            angle=bearing_degrees(depot.lat, depot.lng, order.coordinates.lat, order.coordinates.lng),
            distance_km=haversine_km(depot.lat, depot.lng, order.coordinates.lat, order.coordinates.lng),
        )
        for order in orders
        if order.coordinates is not None
    ]


def build_cluster(cluster_id: str, items: Sequence[PolarOrder]) -> OrderCluster:
    orders = [item.order for item in items]
    centroid = MultiPoint([(o.coordinates.lng, o.coordinates.lat) for o in orders]).centroid
    return OrderCluster(
        id=cluster_id,
        orders=orders,
        center_lat=centroid.y,
        center_lng=centroid.x,
        avg_angle=sum(item.angle for item in items) / len(items),
        avg_distance_km=sum(item.distance_km for item in items) / len(items),
    )


def clustering_stats(clusters: Sequence[OrderCluster]) -> dict[str, float]:
    total_clusters = len(clusters)
    total_orders = sum(len(cluster.orders) for cluster in clusters)
    return {
        "total_clusters": total_clusters,
        "total_orders": total_orders,
        "avg_orders_per_cluster": round(total_orders / total_clusters, 1) if total_clusters else 0.0,
        "avg_cluster_distance_km": round(
            sum(cluster.avg_distance_km for cluster in clusters) / total_clusters, 1
        )
        if total_clusters
        else 0.0,
    }
