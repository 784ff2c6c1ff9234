"""Greedy nearest-fit packing of clustered orders into trip candidates."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

from ...models.domain import (
    Coordinates,
    Order,
    ScheduleOptions,
    TripCandidate,
    VehicleCategory,
    VehicleDefinition,
)
from ..clock import parse_clock
from ..geospatial import distance_between
from ..routing.timeline import is_time_feasible
from ..scheduling.errors import raise_if_cancelled
from ..vehicles.fleet import enabled_vehicles, largest_vehicle
from .splitting import split_oversized

NO_WINDOW_END = "23:59"


@dataclass(slots=True)
class PackingLimits:
    """Capacity envelope of a vehicle group under the current overload tolerance."""

    max_weight_kg: float
    max_volume_m3: Optional[float]
    pallet_slots: int
    max_stops: int

    @classmethod
    def for_vehicle(cls, vehicle: VehicleDefinition, options: ScheduleOptions) -> "PackingLimits":
        scale = 1 + options.tuning.overload_tolerance
        return cls(
            max_weight_kg=vehicle.max_weight_kg * scale,
            max_volume_m3=vehicle.max_volume_m3 * scale if vehicle.max_volume_m3 is not None else None,
            pallet_slots=vehicle.pallet_slots,
            max_stops=options.effective_max_stops(),
        )

    def has_capacity(self, candidate: TripCandidate) -> bool:
        if candidate.stop_count > self.max_stops:
            return False
        if candidate.total_weight_kg > self.max_weight_kg:
            return False
        if self.max_volume_m3 is not None and candidate.total_volume_m3 > self.max_volume_m3:
            return False
        return candidate.total_pallet_slots <= self.pallet_slots


def packing_sort_key(order: Order) -> tuple[float, float]:
    """Tight deadlines first, heavier orders first within the same deadline."""

    end = parse_clock(order.window_end or NO_WINDOW_END, NO_WINDOW_END)
    return (end, -order.weight_kg)


def group_by_category(orders: Sequence[Order]) -> dict[Optional[VehicleCategory], list[Order]]:
    groups: dict[Optional[VehicleCategory], list[Order]] = {}
    for order in orders:
        groups.setdefault(order.constraints.required_vehicle_category, []).append(order)
    return groups


class _GroupPacker:
    """Packs the orders of one vehicle-category group."""

    def __init__(
        self,
        *,
        category: Optional[VehicleCategory],
        limits: PackingLimits,
        depot: Coordinates,
        options: ScheduleOptions,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.category = category
        self.limits = limits
        self.depot = depot
        self.options = options
        self.cancel_event = cancel_event

    def fits(self, candidate: TripCandidate) -> bool:
        return self.limits.has_capacity(candidate) and is_time_feasible(candidate.orders, self.depot, self.options)

    def _anchor(self, candidate: TripCandidate) -> Coordinates:
        if candidate.orders and candidate.orders[-1].coordinates is not None:
            return candidate.orders[-1].coordinates
        return self.depot

    def _nearest_fitting(self, candidate: TripCandidate, pool: list[Order]) -> Optional[int]:
        anchor = self._anchor(candidate)
        ranked = sorted(
            range(len(pool)),
            key=lambda index: distance_between(anchor, pool[index].coordinates or anchor),
        )
        for index in ranked:
            if self.fits(candidate.with_order(pool[index])):
                return index
        return None

    def pack(self, orders: Sequence[Order]) -> list[TripCandidate]:
        ordered = sorted(orders, key=packing_sort_key)
        first_pool = [order for order in ordered if order.constraints.must_be_first]
        last_pool = [order for order in ordered if order.constraints.must_be_last]
        normal_pool = [
            order for order in ordered if not order.constraints.must_be_first and not order.constraints.must_be_last
        ]

        bins: list[TripCandidate] = []
        while first_pool or normal_pool or last_pool:
            raise_if_cancelled(self.cancel_event, "packing")
            candidate = TripCandidate(required_vehicle_category=self.category)

            if first_pool and self.fits(candidate.with_order(first_pool[0])):
                candidate = candidate.with_order(first_pool.pop(0))

            while normal_pool:
                reserved = 1 if last_pool else 0
                if candidate.stop_count >= self.limits.max_stops - reserved:
                    break
                index = self._nearest_fitting(candidate, normal_pool)
                if index is None:
                    break
                candidate = candidate.with_order(normal_pool.pop(index))

            for index, order in enumerate(last_pool):
                extended = candidate.with_order(order)
                if self.fits(extended):
                    candidate = extended
                    last_pool.pop(index)
                    break

            if not candidate.orders:
                pool = first_pool or normal_pool or last_pool
                order = pool.pop(0)
                logging.warning(
                    f"Order {order.order_id} cannot be combined within capacity and time limits; "
                    f"placing it alone"
                )
                candidate = TripCandidate(required_vehicle_category=self.category, forced=True).with_order(order)

            bins.append(candidate)
        return bins


def _single_order_bins(orders: Sequence[Order], category: Optional[VehicleCategory]) -> list[TripCandidate]:
    return [TripCandidate(required_vehicle_category=category).with_order(order) for order in orders]


def pack_group(
    orders: Sequence[Order],
    category: Optional[VehicleCategory],
    vehicles: Sequence[VehicleDefinition],
    depot: Coordinates,
    options: ScheduleOptions,
    cancel_event: Optional[threading.Event] = None,
) -> list[TripCandidate]:
    biggest = largest_vehicle(enabled_vehicles(vehicles, category))
    if biggest is None:
        logging.warning(
            f"No enabled vehicle of category '{category.value if category else 'any'}'; "
            f"{len(orders)} orders will travel alone"
        )
        return _single_order_bins(orders, category)

    expanded = split_oversized(list(orders), biggest, options.tuning.overload_tolerance)
    single = [order for order in expanded if order.constraints.single_trip_only]
    rest = [order for order in expanded if not order.constraints.single_trip_only]

    packer = _GroupPacker(
        category=category,
        limits=PackingLimits.for_vehicle(biggest, options),
        depot=depot,
        options=options,
        cancel_event=cancel_event,
    )
    return _single_order_bins(single, category) + packer.pack(rest)


def pack_cluster(
    orders: Sequence[Order],
    vehicles: Sequence[VehicleDefinition],
    depot: Coordinates,
    options: ScheduleOptions,
    cancel_event: Optional[threading.Event] = None,
) -> list[TripCandidate]:
    """Pack one cluster's orders, every vehicle-category group on its own."""

    bins: list[TripCandidate] = []
    for category, members in group_by_category(orders).items():
        bins.extend(pack_group(members, category, vehicles, depot, options, cancel_event))
    return bins
