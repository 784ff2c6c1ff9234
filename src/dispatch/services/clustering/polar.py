"""Polar sweep clustering around the depot."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import ClusteringConfig, Coordinates, Order, OrderCluster, TuningState
from .base import ClusteringStrategy, PolarOrder, build_cluster, resolve_angle_span, to_polar


def sweep(items: Sequence[PolarOrder], max_angle_span: float, *, prefix: str = "") -> list[OrderCluster]:
    """Slice bearing-sorted orders whenever the span since the cluster start is exceeded.

    Orders on either side of north (359 vs 1 degree) are never merged.
    """
    ordered = sorted(items, key=lambda item: item.angle)
    if not ordered:
        return []

    clusters: list[OrderCluster] = []
    current: list[PolarOrder] = []
    start_angle = ordered[0].angle
    for item in ordered:
        if current and item.angle - start_angle > max_angle_span:
            clusters.append(build_cluster(f"{prefix}C{len(clusters) + 1:02d}", current))
            current = []
            start_angle = item.angle
        current.append(item)
    if current:
        clusters.append(build_cluster(f"{prefix}C{len(clusters) + 1:02d}", current))
    return clusters


class PolarSweepClustering(ClusteringStrategy):
    """Group orders into angular sectors swept clockwise from north."""

    def generate(
        self,
        *,
        depot: Coordinates,
        orders: Sequence[Order],
        config: ClusteringConfig | None = None,
        tuning: TuningState | None = None,
    ) -> list[OrderCluster]:
        span = resolve_angle_span(config, tuning)
        return sweep(to_polar(orders, depot), span)
