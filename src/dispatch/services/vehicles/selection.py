"""Cheapest-feasible vehicle selection for packed trips."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ...config import settings
from ...models.domain import CostBreakdown, CostMode, TripCandidate, VehicleDefinition
from ..scheduling.errors import NoEnabledVehiclesError
from .costing import calculate_cost
from .fleet import enabled_vehicles, largest_vehicle

INEFFICIENT_MARKER = "[inefficient]"


@dataclass(slots=True)
class VehicleSelection:
    vehicle: VehicleDefinition
    cost: CostBreakdown
    load_rate_weight: float
    load_rate_pallet: float
    reason: str
    overloaded: bool = False
    category_mismatch: bool = False


def load_rates(candidate: TripCandidate, vehicle: VehicleDefinition) -> tuple[float, float]:
    weight = candidate.total_weight_kg / vehicle.max_weight_kg if vehicle.max_weight_kg > 0 else float("inf")
    pallet = candidate.total_pallet_slots / vehicle.pallet_slots if vehicle.pallet_slots > 0 else float("inf")
    return weight, pallet


def can_carry(vehicle: VehicleDefinition, candidate: TripCandidate) -> bool:
    if vehicle.max_weight_kg < candidate.total_weight_kg:
        return False
    if vehicle.pallet_slots < candidate.total_pallet_slots:
        return False
    if vehicle.max_volume_m3 is not None and candidate.total_volume_m3 > 0:
        return vehicle.max_volume_m3 >= candidate.total_volume_m3
    return True


def select_vehicle(
    candidate: TripCandidate,
    vehicles: Sequence[VehicleDefinition],
    distance_km: float,
    cost_mode: CostMode = "mileage",
    *,
    show_market_reference: bool | None = None,
) -> VehicleSelection:
    """Pick the cheapest vehicle able to carry the trip.

    When the required category has no enabled vehicle the whole enabled fleet
    is considered and the result is flagged as a category mismatch. When no
    vehicle can carry the load the largest one is returned, flagged overloaded.
    """
    pool = enabled_vehicles(vehicles)
    if not pool:
        raise NoEnabledVehiclesError("No enabled vehicles available for selection.")

    category_mismatch = False
    if candidate.required_vehicle_category is not None:
        in_category = enabled_vehicles(pool, candidate.required_vehicle_category)
        if in_category:
            pool = in_category
        else:
            category_mismatch = True
            logging.warning(
                f"No enabled '{candidate.required_vehicle_category.value}' vehicle; "
                f"falling back to the full fleet"
            )

    stop_count = candidate.stop_count

    def cost_of(vehicle: VehicleDefinition) -> CostBreakdown:
        return calculate_cost(
            vehicle, distance_km, stop_count, cost_mode, with_market_reference=show_market_reference
        )

    qualifying = [vehicle for vehicle in pool if can_carry(vehicle, candidate)]
    if not qualifying:
        vehicle = largest_vehicle(pool)
        weight_rate, pallet_rate = load_rates(candidate, vehicle)
        logging.warning(
            f"No vehicle can carry {candidate.total_weight_kg:.0f}kg/{candidate.total_pallet_slots} pallets; "
            f"using largest {vehicle.name} at {weight_rate:.0%}"
        )
        reason = (
            f"Capacity exceeded: {vehicle.name} is the largest available vehicle, "
            f"weight load {weight_rate:.0%}, pallet load {pallet_rate:.0%}; consider splitting the trip"
        )
        return VehicleSelection(
            vehicle=vehicle,
            cost=cost_of(vehicle),
            load_rate_weight=weight_rate,
            load_rate_pallet=pallet_rate,
            reason=reason,
            overloaded=True,
            category_mismatch=category_mismatch,
        )

    priced = [(cost_of(vehicle), vehicle) for vehicle in qualifying]
    cost, vehicle = min(
        priced,
        key=lambda item: (item[0].total, item[1].max_weight_kg, item[1].pallet_slots, item[1].name),
    )
    weight_rate, pallet_rate = load_rates(candidate, vehicle)
    reason = f"{vehicle.name} is the cheapest fit (cost {cost.total:.0f}, weight load {weight_rate:.0%})"
    if category_mismatch:
        reason += f"; no '{candidate.required_vehicle_category.value}' vehicle available"
    if vehicle.max_weight_kg > settings.small_vehicle_max_weight_kg and weight_rate < settings.inefficient_load_rate:
        reason = f"{INEFFICIENT_MARKER} {reason}; consider regrouping orders"

    return VehicleSelection(
        vehicle=vehicle,
        cost=cost,
        load_rate_weight=weight_rate,
        load_rate_pallet=pallet_rate,
        reason=reason,
        category_mismatch=category_mismatch,
    )
