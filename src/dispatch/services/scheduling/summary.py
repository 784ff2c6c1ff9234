"""Aggregate statistics for a set of trips."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import Order, ScheduleSummary, Trip, VehicleCategory

COST_FIELDS = ("fuel", "toll", "labor", "drop_charges", "return_empty", "other")


def constraints_summary(orders: Sequence[Order]) -> dict[str, int]:
    def count(predicate) -> int:
        return sum(1 for order in orders if predicate(order.constraints))

    return {
        "flying_wing_required": count(lambda c: c.required_vehicle_category == VehicleCategory.FLYING_WING),
        "weekend_excluded": count(lambda c: c.exclude_saturday or c.exclude_sunday),
        "no_stack_orders": count(lambda c: c.no_stack),
        "must_be_first_orders": count(lambda c: c.must_be_first),
        "must_be_last_orders": count(lambda c: c.must_be_last),
        "single_trip_orders": count(lambda c: c.single_trip_only),
    }


def generate_summary(
    trips: Sequence[Trip],
    all_orders: Sequence[Order],
    invalid_orders: Sequence[Order],
    suggestions: Sequence[str] = (),
) -> ScheduleSummary:
    vehicle_breakdown: dict[str, int] = {}
    for trip in trips:
        vehicle_breakdown[trip.vehicle_type] = vehicle_breakdown.get(trip.vehicle_type, 0) + 1

    cost_breakdown = {
        name: round(sum(getattr(trip.cost_breakdown, name) for trip in trips), 2) for name in COST_FIELDS
    }
    trip_count = len(trips)

    return ScheduleSummary(
        total_orders=len(all_orders),
        total_trips=trip_count,
        total_distance_km=round(sum(trip.total_distance_km for trip in trips), 1),
        total_duration_h=round(sum(trip.total_duration_h for trip in trips), 1),
        total_cost=round(sum(trip.estimated_cost for trip in trips), 2),
        cost_breakdown=cost_breakdown,
        avg_load_rate_weight=sum(trip.load_rate_weight for trip in trips) / trip_count if trip_count else 0.0,
        avg_load_rate_pallet=sum(trip.load_rate_pallet for trip in trips) / trip_count if trip_count else 0.0,
        vehicle_breakdown=vehicle_breakdown,
        risk_orders=[stop.order.order_id for trip in trips for stop in trip.stops if not stop.is_on_time],
        invalid_orders=[order.order_id for order in invalid_orders],
        constraints_summary=constraints_summary(all_orders),
        suggestions=list(suggestions),
    )


def empty_summary() -> ScheduleSummary:
    return generate_summary([], [], [])
