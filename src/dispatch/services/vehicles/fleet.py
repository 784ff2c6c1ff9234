"""Default fleet and vehicle category canonicalization."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from ...models.domain import VehicleCategory, VehicleDefinition

CATEGORY_SYNONYMS: dict[str, VehicleCategory] = {
    "box": VehicleCategory.BOX,
    "box truck": VehicleCategory.BOX,
    "van": VehicleCategory.BOX,
    "厢式": VehicleCategory.BOX,
    "厢式车": VehicleCategory.BOX,
    "厢车": VehicleCategory.BOX,
    "封闭车": VehicleCategory.BOX,
    "flying_wing": VehicleCategory.FLYING_WING,
    "flying wing": VehicleCategory.FLYING_WING,
    "wing": VehicleCategory.FLYING_WING,
    "飞翼": VehicleCategory.FLYING_WING,
    "飞翼车": VehicleCategory.FLYING_WING,
    "侧开门": VehicleCategory.FLYING_WING,
    "flatbed": VehicleCategory.FLATBED,
    "平板": VehicleCategory.FLATBED,
    "平板车": VehicleCategory.FLATBED,
    "high_rail": VehicleCategory.HIGH_RAIL,
    "high rail": VehicleCategory.HIGH_RAIL,
    "高栏": VehicleCategory.HIGH_RAIL,
    "高栏车": VehicleCategory.HIGH_RAIL,
    "refrigerated": VehicleCategory.REFRIGERATED,
    "reefer": VehicleCategory.REFRIGERATED,
    "冷藏": VehicleCategory.REFRIGERATED,
    "冷藏车": VehicleCategory.REFRIGERATED,
    "tail_lift": VehicleCategory.TAIL_LIFT,
    "tail lift": VehicleCategory.TAIL_LIFT,
    "尾板": VehicleCategory.TAIL_LIFT,
    "尾板车": VehicleCategory.TAIL_LIFT,
}

_LENGTH_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(?:m|米|meter|meters)?$", re.IGNORECASE)


def _vehicle(
    length: str,
    max_weight_kg: float,
    pallet_slots: int,
    base_price: float,
    price_per_km: float,
    fuel_cost_per_km: float,
    toll_per_km: float,
    drop_charge: float,
    return_empty_rate: Optional[float] = None,
) -> VehicleDefinition:
    return VehicleDefinition(
        id=f"v-{length}",
        name=f"{length}m",
        category=VehicleCategory.BOX,
        max_weight_kg=max_weight_kg,
        pallet_slots=pallet_slots,
        base_price=base_price,
        price_per_km=price_per_km,
        fuel_cost_per_km=fuel_cost_per_km,
        toll_per_km=toll_per_km,
        drop_charge=drop_charge,
        return_empty_rate=return_empty_rate,
    )


DEFAULT_FLEET: tuple[VehicleDefinition, ...] = (
    _vehicle("3.8", 3000, 6, 480, 2.2, 1.1, 0.4, 50),
    _vehicle("4.2", 4500, 8, 550, 2.4, 1.2, 0.5, 60),
    _vehicle("6.8", 10000, 14, 650, 2.8, 1.4, 0.7, 80),
    _vehicle("9.6", 18000, 20, 800, 3.2, 1.6, 0.9, 100, 0.3),
    _vehicle("12.5", 30000, 30, 900, 3.6, 1.8, 1.1, 120, 0.35),
    _vehicle("13.5", 32000, 32, 1000, 3.8, 1.9, 1.2, 130, 0.35),
    _vehicle("17.5", 40000, 40, 1100, 4.0, 2.0, 1.4, 150, 0.4),
)


def default_fleet() -> list[VehicleDefinition]:
    return list(DEFAULT_FLEET)


def canonical_vehicle_name(value: str) -> str:
    """Normalize length-style names: "3.8米", "3.8 M" and "3.8" all become "3.8m"."""

    text = value.strip()
    match = _LENGTH_PATTERN.match(text)
    if match:
        return f"{match.group(1)}m"
    return text


def canonical_category(value: object) -> Optional[VehicleCategory]:
    """Map free text (English or Chinese) onto a vehicle category, or None."""

    if value is None:
        return None
    if isinstance(value, VehicleCategory):
        return value
    text = str(value).strip().lower()
    if not text:
        return None
    return CATEGORY_SYNONYMS.get(text)


def resolve_requirement(
    value: object,
    vehicles: Sequence[VehicleDefinition] | None = None,
) -> Optional[VehicleCategory]:
    """Turn a raw vehicle requirement into a category.

    Category names resolve directly; vehicle names (including length synonyms
    such as "3.8米") resolve to the category of the matching fleet vehicle.
    Unrecognized text raises ``ValueError`` so bad input is rejected at the
    ingestion boundary.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    category = canonical_category(value)
    if category is not None:
        return category

    name = canonical_vehicle_name(str(value))
    for vehicle in vehicles if vehicles is not None else DEFAULT_FLEET:
        if vehicle.name == name or vehicle.id == name or canonical_vehicle_name(vehicle.name) == name:
            return vehicle.category
    raise ValueError(f"Unknown vehicle requirement '{value}'.")


def enabled_vehicles(
    vehicles: Sequence[VehicleDefinition],
    category: Optional[VehicleCategory] = None,
) -> list[VehicleDefinition]:
    return [
        vehicle
        for vehicle in vehicles
        if vehicle.enabled and (category is None or vehicle.category == category)
    ]


def largest_vehicle(vehicles: Sequence[VehicleDefinition]) -> Optional[VehicleDefinition]:
    if not vehicles:
        return None
    return max(vehicles, key=lambda vehicle: vehicle.max_weight_kg)
