"""Trip cost arithmetic for the supported pricing modes."""

from __future__ import annotations

from ...config import settings
from ...models.domain import CostBreakdown, CostMode, VehicleDefinition

FUEL_SHARE = 0.4
TOLL_SHARE = 0.3
LABOR_SHARE = 0.3

MARKET_RATE_TIERS: tuple[tuple[float, float], ...] = (
    (4000.0, 3.5),
    (10000.0, 4.0),
    (20000.0, 5.0),
)
MARKET_RATE_HEAVY = 6.0
MARKET_BASE_PRICE = 200.0
MARKET_BAND = 0.15


def market_reference(distance_km: float, max_weight_kg: float) -> tuple[float, float]:
    """Empirical (min, max) price band for a vehicle size and distance."""

    rate = next((rate for limit, rate in MARKET_RATE_TIERS if max_weight_kg <= limit), MARKET_RATE_HEAVY)
    base = MARKET_BASE_PRICE + distance_km * rate
    return (round(base * (1 - MARKET_BAND)), round(base * (1 + MARKET_BAND)))


def _split_total(total: float) -> tuple[float, float, float]:
    return total * FUEL_SHARE, total * TOLL_SHARE, total * LABOR_SHARE


def calculate_cost(
    vehicle: VehicleDefinition,
    distance_km: float,
    stop_count: int,
    mode: CostMode = "mileage",
    *,
    with_market_reference: bool | None = None,
) -> CostBreakdown:
    mileage_total = vehicle.base_price + distance_km * vehicle.price_per_km

    match mode:
        case "fixed":
            total = vehicle.fixed_price if vehicle.fixed_price is not None else vehicle.base_price
            fuel, toll, labor = _split_total(total)
        case "weight":
            total = mileage_total
            fuel, toll, labor = _split_total(total)
        case "hybrid":
            fixed = vehicle.fixed_price if vehicle.fixed_price is not None else 0.0
            total = max(fixed, mileage_total)
            fuel, toll, labor = _split_total(total)
        case _:
            fuel_rate = (
                vehicle.fuel_cost_per_km
                if vehicle.fuel_cost_per_km is not None
                else vehicle.price_per_km * FUEL_SHARE
            )
            toll_rate = vehicle.toll_per_km if vehicle.toll_per_km is not None else vehicle.price_per_km * TOLL_SHARE
            fuel = distance_km * fuel_rate
            toll = distance_km * toll_rate
            labor = distance_km * vehicle.price_per_km * LABOR_SHARE
            total = mileage_total

    drop_charges = 0.0
    if stop_count > 1 and vehicle.drop_charge:
        drop_charges = (stop_count - 1) * vehicle.drop_charge

    return_empty = 0.0
    if distance_km > settings.return_empty_threshold_km and vehicle.return_empty_rate:
        return_empty = distance_km * vehicle.price_per_km * vehicle.return_empty_rate

    total += drop_charges + return_empty

    show_reference = settings.show_market_reference if with_market_reference is None else with_market_reference
    return CostBreakdown(
        total=round(total, 2),
        fuel=round(fuel, 2),
        toll=round(toll, 2),
        labor=round(labor, 2),
        drop_charges=round(drop_charges, 2),
        return_empty=round(return_empty, 2),
        other=0.0,
        market_reference=market_reference(distance_km, vehicle.max_weight_kg) if show_reference else None,
    )
