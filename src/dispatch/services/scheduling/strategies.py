"""Solver strategies: how orders are grouped before packing."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Sequence

from ...models.domain import Coordinates, Order, OrderCluster, ScheduleOptions, Trip, VehicleDefinition
from ..clustering.dispatcher import cluster_orders, get_strategy
from .errors import raise_if_cancelled
from .planner import ClusterProgress, plan_trips


class StrategyId(str, Enum):
    GREEDY = "greedy"
    KMEANS = "kmeans"


@dataclass(slots=True, frozen=True)
class StrategyMeta:
    id: StrategyId
    name: str
    description: str
    suitable_for: str


class SolverStrategy(ABC):
    """Contract for the cluster -> pack -> sequence -> select pipeline."""

    meta: ClassVar[StrategyMeta]

    @abstractmethod
    def cluster(
        self,
        orders: Sequence[Order],
        depot: Coordinates,
        options: ScheduleOptions,
    ) -> list[OrderCluster]:
        raise NotImplementedError

    def solve(
        self,
        *,
        orders: Sequence[Order],
        depot: Coordinates,
        vehicles: Sequence[VehicleDefinition],
        options: ScheduleOptions,
        cancel_event: Optional[threading.Event] = None,
        on_cluster: Optional[ClusterProgress] = None,
    ) -> list[Trip]:
        raise_if_cancelled(cancel_event, "clustering")
        clusters = self.cluster(orders, depot, options)
        return plan_trips(
            clusters,
            depot=depot,
            vehicles=vehicles,
            options=options,
            cancel_event=cancel_event,
            on_cluster=on_cluster,
        )


class GreedyNearestNeighborStrategy(SolverStrategy):
    meta = StrategyMeta(
        id=StrategyId.GREEDY,
        name="Greedy nearest neighbor",
        description="Bearing-based grouping around the depot followed by nearest-neighbor stop ordering.",
        suitable_for="Large, concentrated order sets that need a fast answer.",
    )

    def cluster(self, orders: Sequence[Order], depot: Coordinates, options: ScheduleOptions) -> list[OrderCluster]:
        return cluster_orders(orders, depot, options.clustering, options.tuning)


class KMeansStrategy(SolverStrategy):
    meta = StrategyMeta(
        id=StrategyId.KMEANS,
        name="K-Means clustering",
        description="Compact K-Means groups sized to roughly one trip each, then the same packing and routing.",
        suitable_for="Scattered orders with local concentrations.",
    )

    def cluster(self, orders: Sequence[Order], depot: Coordinates, options: ScheduleOptions) -> list[OrderCluster]:
        strategy = get_strategy("kmeans", orders_per_cluster=options.effective_max_stops())
        return strategy.generate(depot=depot, orders=orders, config=options.clustering, tuning=options.tuning)


def get_solver(strategy: StrategyId | str) -> SolverStrategy:
    match StrategyId(strategy):
        case StrategyId.GREEDY:
            return GreedyNearestNeighborStrategy()
        case StrategyId.KMEANS:
            return KMeansStrategy()


def list_strategies() -> list[StrategyMeta]:
    return [GreedyNearestNeighborStrategy.meta, KMeansStrategy.meta]
