"""Distance band and hybrid (band, then sweep) clustering."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import ClusteringConfig, Coordinates, Order, OrderCluster, TuningState
from .base import (
    ClusteringStrategy,
    PolarOrder,
    build_cluster,
    resolve_angle_span,
    resolve_distance_thresholds,
    to_polar,
)
from .polar import sweep

BAND_NAMES = ("NEAR", "MID", "FAR")
HYBRID_MIN_BAND_SIZE = 4


def split_into_bands(items: Sequence[PolarOrder], thresholds: Sequence[float]) -> list[tuple[str, list[PolarOrder]]]:
    bounds = sorted(thresholds)
    bands: list[tuple[str, list[PolarOrder]]] = []
    lower = float("-inf")
    for index, upper in enumerate(bounds):
        name = BAND_NAMES[index] if index < len(BAND_NAMES) else f"BAND{index + 1}"
        members = [item for item in items if lower < item.distance_km <= upper]
        if members:
            bands.append((name, members))
        lower = upper
    beyond = [item for item in items if item.distance_km > lower]
    if beyond:
        bands.append(("VERY_FAR", beyond))
    return bands


class DistanceBandClustering(ClusteringStrategy):
    """Ring-shaped groups by straight-line distance from the depot."""

    def generate(
        self,
        *,
        depot: Coordinates,
        orders: Sequence[Order],
        config: ClusteringConfig | None = None,
        tuning: TuningState | None = None,
    ) -> list[OrderCluster]:
        bands = split_into_bands(to_polar(orders, depot), resolve_distance_thresholds(config))
        return [build_cluster(name, members) for name, members in bands]


class HybridClustering(ClusteringStrategy):
    """Distance bands first, then a polar sweep inside every crowded band."""

    def generate(
        self,
        *,
        depot: Coordinates,
        orders: Sequence[Order],
        config: ClusteringConfig | None = None,
        tuning: TuningState | None = None,
    ) -> list[OrderCluster]:
        span = resolve_angle_span(config, tuning)
        clusters: list[OrderCluster] = []
        for name, members in split_into_bands(to_polar(orders, depot), resolve_distance_thresholds(config)):
            if len(members) < HYBRID_MIN_BAND_SIZE:
                clusters.append(build_cluster(f"{name}_C01", members))
                continue
            clusters.extend(sweep(members, span, prefix=f"{name}_"))
        return clusters
