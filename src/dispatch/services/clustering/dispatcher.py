"""Factory for clustering strategies based on the requested method."""

from __future__ import annotations

from typing import Any, Sequence

from ...models.domain import ClusteringConfig, Coordinates, Order, OrderCluster, TuningState
from .base import ClusteringStrategy
from .distance import DistanceBandClustering, HybridClustering
from .kmeans import KMeansClustering
from .polar import PolarSweepClustering


def get_strategy(method: str, **kwargs: Any) -> ClusteringStrategy:
    match method:
        case "sweep":
            return PolarSweepClustering()
        case "distance":
            return DistanceBandClustering()
        case "hybrid":
            return HybridClustering()
        case "kmeans":
            kmeans_kwargs = {k: v for k, v in kwargs.items() if k in {"orders_per_cluster", "random_state"}}
            return KMeansClustering(**kmeans_kwargs)
        case _:
            raise ValueError(f"Unknown clustering method '{method}'.")


def cluster_orders(
    orders: Sequence[Order],
    depot: Coordinates,
    config: ClusteringConfig | None = None,
    tuning: TuningState | None = None,
) -> list[OrderCluster]:
    """Cluster with the method named in ``config`` (polar sweep by default)."""

    method = config.method if config else "sweep"
    return get_strategy(method).generate(depot=depot, orders=orders, config=config, tuning=tuning)
