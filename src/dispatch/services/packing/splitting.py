"""Splitting of orders that exceed the largest vehicle of their group."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

from ...config import settings
from ...models.domain import Order, VehicleDefinition
from ..scheduling.errors import SplitLimitExceededError


@dataclass(slots=True)
class SplitPart:
    weight_kg: float
    volume_m3: Optional[float]
    pallet_slots: int


def _exceeds(
    weight_kg: float,
    volume_m3: Optional[float],
    pallet_slots: int,
    vehicle: VehicleDefinition,
    overload_tolerance: float,
) -> bool:
    scale = 1 + overload_tolerance
    if weight_kg > vehicle.max_weight_kg * scale:
        return True
    if volume_m3 is not None and vehicle.max_volume_m3 is not None and volume_m3 > vehicle.max_volume_m3 * scale:
        return True
    return pallet_slots > vehicle.pallet_slots


def is_oversized(order: Order, vehicle: VehicleDefinition, overload_tolerance: float) -> bool:
    """Weight and volume are checked against tolerance-scaled capacity, pallet slots are hard."""

    return _exceeds(order.weight_kg, order.volume_m3, order.effective_pallet_slots, vehicle, overload_tolerance)


def plan_split(
    order: Order,
    vehicle: VehicleDefinition,
    overload_tolerance: Optional[float] = None,
) -> list[SplitPart]:
    """Cut an order into sequential parts at the fill ratio of each capacity.

    Every cut takes the same fraction of the remaining weight, volume and
    pallet slots, limited by whichever dimension binds first. Cutting stops as
    soon as the remainder is no longer oversized, and the remainder becomes the
    last part, so the totals are conserved.
    """
    if overload_tolerance is None:
        overload_tolerance = settings.default_overload_tolerance
    ratio = settings.split_fill_ratio
    weight_chunk = vehicle.max_weight_kg * ratio
    volume_chunk = vehicle.max_volume_m3 * ratio if vehicle.max_volume_m3 is not None else None
    pallet_chunk = max(1, math.floor(vehicle.pallet_slots * ratio))

    remaining_weight = order.weight_kg
    remaining_volume = order.volume_m3
    remaining_pallets = order.effective_pallet_slots
    parts: list[SplitPart] = []

    while _exceeds(remaining_weight, remaining_volume, remaining_pallets, vehicle, overload_tolerance):
        if len(parts) + 1 >= settings.max_split_parts:
            raise SplitLimitExceededError(order.order_id, settings.max_split_parts)

        fraction = min(1.0, weight_chunk / remaining_weight)
        if volume_chunk is not None and remaining_volume:
            fraction = min(fraction, volume_chunk / remaining_volume)
        if remaining_pallets > 0:
            fraction = min(fraction, pallet_chunk / remaining_pallets)

        if fraction <= 0.0 or fraction >= 1.0:
            # some capacity is zero or too small for a single pallet, no cut can make progress
            raise SplitLimitExceededError(order.order_id, settings.max_split_parts)

        weight = round(remaining_weight * fraction, 3)
        volume = round(remaining_volume * fraction, 3) if remaining_volume is not None else None
        pallets = min(pallet_chunk, remaining_pallets, round(remaining_pallets * fraction))
        parts.append(SplitPart(weight, volume, pallets))

        remaining_weight = round(remaining_weight - weight, 3)
        if remaining_volume is not None:
            remaining_volume = round(remaining_volume - volume, 3)
        remaining_pallets -= pallets

    parts.append(SplitPart(remaining_weight, remaining_volume, remaining_pallets))
    return parts


def split_order(
    order: Order,
    vehicle: VehicleDefinition,
    overload_tolerance: Optional[float] = None,
) -> list[Order]:
    parts = plan_split(order, vehicle, overload_tolerance)
    if len(parts) == 1:
        return [order]

    logging.warning(
        f"Order {order.order_id} ({order.weight_kg}kg) exceeds {vehicle.name} capacity, split into {len(parts)} parts"
    )
    children: list[Order] = []
    for index, part in enumerate(parts, start=1):
        children.append(
            Order(
                order_id=f"{order.order_id}-{index}",
                weight_kg=part.weight_kg,
                coordinates=order.coordinates,
                constraints=replace(order.constraints, parsed_rules=list(order.constraints.parsed_rules)),
                volume_m3=part.volume_m3,
                customer_name=order.customer_name,
                address=order.address,
                effective_pallet_slots=part.pallet_slots,
                cleaning_warnings=[
                    *order.cleaning_warnings,
                    f"Oversized order {order.order_id} was split into {len(parts)} parts "
                    f"(part {index}/{len(parts)}, {part.weight_kg}kg) to fit {vehicle.name}.",
                ],
                parent_order_id=order.order_id,
            )
        )
    return children


def split_oversized(
    orders: list[Order],
    vehicle: VehicleDefinition,
    overload_tolerance: float,
) -> list[Order]:
    result: list[Order] = []
    for order in orders:
        if is_oversized(order, vehicle, overload_tolerance):
            result.extend(split_order(order, vehicle, overload_tolerance))
        else:
            result.append(order)
    return result
