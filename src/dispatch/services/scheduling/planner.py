"""Turns packed trip candidates into finalized trips."""

from __future__ import annotations

import threading
from typing import Callable, Optional, Sequence

from ...models.domain import Coordinates, OrderCluster, ScheduleOptions, Trip, TripCandidate, VehicleDefinition
from ..clock import format_clock
from ..packing.service import pack_cluster
from ..routing.sequencer import sequence_orders
from ..routing.timeline import build_stops, simulate
from ..vehicles.selection import select_vehicle
from .errors import raise_if_cancelled

ClusterProgress = Callable[[int, int], None]


def build_trip(
    candidate: TripCandidate,
    *,
    trip_id: str,
    depot: Coordinates,
    vehicles: Sequence[VehicleDefinition],
    options: ScheduleOptions,
    cluster_id: Optional[str] = None,
) -> Trip:
    sequence = sequence_orders(candidate.orders, depot)
    timeline = simulate(sequence, depot, options)
    distance_km = timeline.total_road_km
    selection = select_vehicle(
        candidate,
        vehicles,
        distance_km,
        options.cost_mode,
        show_market_reference=options.show_market_reference,
    )
    stops = build_stops(timeline)
    risk_stops = [stop.sequence for stop in stops if not stop.is_on_time]

    reason = selection.reason
    if candidate.forced:
        reason += "; placed alone because it could not be combined with other orders"

    return Trip(
        trip_id=trip_id,
        vehicle_type=selection.vehicle.name,
        vehicle_category=selection.vehicle.category,
        stops=stops,
        departure_time=format_clock(timeline.start_minutes),
        return_time=format_clock(timeline.end_minutes),
        total_distance_km=round(distance_km, 2),
        total_duration_h=round((timeline.end_minutes - timeline.start_minutes) / 60.0, 2),
        total_weight_kg=round(candidate.total_weight_kg, 3),
        total_volume_m3=round(candidate.total_volume_m3, 3),
        total_pallet_slots=candidate.total_pallet_slots,
        load_rate_weight=selection.load_rate_weight,
        load_rate_pallet=selection.load_rate_pallet,
        estimated_cost=selection.cost.total,
        cost_breakdown=selection.cost,
        is_valid=not risk_stops,
        has_risk=bool(risk_stops),
        risk_stops=risk_stops,
        reason=reason,
        required_vehicle_category=candidate.required_vehicle_category,
        cluster_id=cluster_id,
        forced=candidate.forced,
        vehicle_id=selection.vehicle.id,
    )


def plan_trips(
    clusters: Sequence[OrderCluster],
    *,
    depot: Coordinates,
    vehicles: Sequence[VehicleDefinition],
    options: ScheduleOptions,
    cancel_event: Optional[threading.Event] = None,
    on_cluster: Optional[ClusterProgress] = None,
) -> list[Trip]:
    """Pack, sequence and price every cluster; trip ids run T001, T002, ... across clusters."""

    trips: list[Trip] = []
    for index, cluster in enumerate(clusters):
        raise_if_cancelled(cancel_event, f"cluster {cluster.id}")
        for candidate in pack_cluster(cluster.orders, vehicles, depot, options, cancel_event):
            trips.append(
                build_trip(
                    candidate,
                    trip_id=f"T{len(trips) + 1:03d}",
                    depot=depot,
                    vehicles=vehicles,
                    options=options,
                    cluster_id=cluster.id,
                )
            )
        if on_cluster is not None:
            on_cluster(index + 1, len(clusters))
    return trips
