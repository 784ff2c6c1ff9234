"""K-Means clustering of orders on a local planar projection."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from sklearn.cluster import KMeans

from ...config import settings
from ...models.domain import ClusteringConfig, Coordinates, Order, OrderCluster, TuningState
from ..geospatial import EARTH_RADIUS_KM
from .base import ClusteringStrategy, PolarOrder, build_cluster, to_polar


class KMeansClustering(ClusteringStrategy):
    """Partition orders into compact groups sized for roughly one trip each.

    Coordinates are projected with an equirectangular approximation centred on
    the depot, which is accurate enough for delivery areas of a few hundred km.
    The cluster count defaults to ``ceil(orders / orders_per_cluster)``.
    """

    def __init__(
        self,
        *,
        orders_per_cluster: int = 8,
        random_state: int | None = None,
        max_iter: int = 300,
    ) -> None:
        self.orders_per_cluster = max(1, orders_per_cluster)
        self.random_state = settings.kmeans_random_state if random_state is None else random_state
        self.max_iter = max_iter

    def _convert_to_cartesian(self, depot: Coordinates, lat: float, lon: float) -> tuple[float, float]:
        lat_ref_rad = np.radians(depot.lat)
        x = EARTH_RADIUS_KM * (np.radians(lon) - np.radians(depot.lng)) * np.cos(lat_ref_rad)
        y = EARTH_RADIUS_KM * (np.radians(lat) - lat_ref_rad)
        return float(x), float(y)

    def generate(
        self,
        *,
        depot: Coordinates,
        orders: Sequence[Order],
        config: ClusteringConfig | None = None,
        tuning: TuningState | None = None,
    ) -> list[OrderCluster]:
        items = to_polar(orders, depot)
        if not items:
            return []

        target = min(len(items), math.ceil(len(items) / self.orders_per_cluster))
        if target <= 1:
            return [build_cluster("C01", items)]

        coordinates = np.array(
            [
                self._convert_to_cartesian(depot, item.order.coordinates.lat, item.order.coordinates.lng)
                for item in items
            ]
        )
        kmeans = KMeans(
            n_clusters=target,
            random_state=self.random_state,
            n_init=10,
            max_iter=self.max_iter,
        )
        labels = kmeans.fit_predict(coordinates)

        groups: dict[int, list[PolarOrder]] = {}
        for item, label in zip(items, labels):
            groups.setdefault(int(label), []).append(item)

        # number clusters clockwise from north so ids do not depend on label order
        ordered = sorted(groups.values(), key=lambda members: sum(m.angle for m in members) / len(members))
        return [build_cluster(f"C{index + 1:02d}", members) for index, members in enumerate(ordered)]
