"""Stop ordering inside a trip.

Orders flagged must-be-first are visited before everything else (closest to
the depot first), the remaining orders follow a nearest-neighbor tour that
starts at the depot, and must-be-last orders close the trip, each one the
closest to the stop before it. The nearest-neighbor segment can optionally
be refined with 2-opt.
"""

from __future__ import annotations

from typing import Sequence

from ...config import settings
from ...models.domain import Coordinates, Order
from ..geospatial import distance_between


def _position(order: Order, fallback: Coordinates) -> Coordinates:
    return order.coordinates or fallback


def nearest_neighbor(orders: Sequence[Order], start: Coordinates) -> list[Order]:
    remaining = list(orders)
    result: list[Order] = []
    current = start
    while remaining:
        nearest_index = min(
            range(len(remaining)),
            key=lambda index: distance_between(current, _position(remaining[index], current)),
        )
        nearest = remaining.pop(nearest_index)
        result.append(nearest)
        current = _position(nearest, current)
    return result


def _edges_cost(route: Sequence[Order], i: int, j: int, depot: Coordinates) -> float:
    previous = depot if i == 0 else _position(route[i - 1], depot)
    following = depot if j == len(route) - 1 else _position(route[j + 1], depot)
    return distance_between(previous, _position(route[i], depot)) + distance_between(
        _position(route[j], depot), following
    )


def two_opt_improve(
    orders: Sequence[Order],
    depot: Coordinates,
    *,
    max_iterations: int | None = None,
    improvement_threshold_km: float | None = None,
) -> list[Order]:
    """Reverse segments while doing so shortens the depot-to-depot tour."""

    route = list(orders)
    if len(route) <= 2:
        return route
    max_iterations = max_iterations or settings.two_opt_max_iterations
    threshold = settings.two_opt_improvement_km if improvement_threshold_km is None else improvement_threshold_km

    improved = True
    iteration = 0
    while improved and iteration < max_iterations:
        improved = False
        iteration += 1
        for i in range(len(route) - 1):
            for j in range(i + 2, len(route)):
                current = _edges_cost(route, i, j, depot)
                candidate = route[:i] + route[i : j + 1][::-1] + route[j + 1 :]
                if current - _edges_cost(candidate, i, j, depot) > threshold:
                    route = candidate
                    improved = True
    return route


def sequence_orders(
    orders: Sequence[Order],
    depot: Coordinates,
    *,
    two_opt: bool | None = None,
) -> list[Order]:
    if len(orders) <= 1:
        return list(orders)

    first = [order for order in orders if order.constraints.must_be_first]
    last = [order for order in orders if order.constraints.must_be_last]
    normal = [
        order for order in orders if not order.constraints.must_be_first and not order.constraints.must_be_last
    ]

    result = sorted(first, key=lambda order: distance_between(depot, _position(order, depot)))

    middle = nearest_neighbor(normal, depot)
    if two_opt if two_opt is not None else settings.two_opt_enabled:
        middle = two_opt_improve(middle, depot)
    result.extend(middle)

    tail_start = _position(result[-1], depot) if result else depot
    result.extend(nearest_neighbor(last, tail_start))
    return result


def segment_distances_km(orders: Sequence[Order], depot: Coordinates) -> list[float]:
    """Straight-line distance of every leg from the previous stop (depot for the first)."""

    distances: list[float] = []
    current = depot
    for order in orders:
        target = _position(order, current)
        distances.append(distance_between(current, target))
        current = target
    return distances


def route_distance_km(orders: Sequence[Order], depot: Coordinates) -> float:
    """Straight-line length of depot -> stops -> depot."""

    if not orders:
        return 0.0
    last = _position(orders[-1], depot)
    return sum(segment_distances_km(orders, depot)) + distance_between(last, depot)
