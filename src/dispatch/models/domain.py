"""Domain models for orders, fleet definitions and produced trip plans."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Literal, Optional

CostMode = Literal["fixed", "mileage", "weight", "hybrid"]
IssueType = Literal["overload", "inefficient", "time_conflict", "vehicle_mismatch"]
Severity = Literal["critical", "warning"]


class VehicleCategory(str, Enum):
    """Closed set of body types a vehicle (or an order requirement) can name."""

    BOX = "box"
    FLYING_WING = "flying_wing"
    FLATBED = "flatbed"
    HIGH_RAIL = "high_rail"
    REFRIGERATED = "refrigerated"
    TAIL_LIFT = "tail_lift"


@dataclass(slots=True, frozen=True)
class Coordinates:
    lng: float
    lat: float


@dataclass(slots=True, frozen=True)
class TimeWindow:
    start: str
    end: str


@dataclass(slots=True)
class RouteConstraints:
    """Structured delivery constraints attached to a single order."""

    required_vehicle_category: Optional[VehicleCategory] = None
    no_stack: bool = False
    must_be_first: bool = False
    must_be_last: bool = False
    single_trip_only: bool = False
    exclude_saturday: bool = False
    exclude_sunday: bool = False
    time_window: Optional[TimeWindow] = None
    raw_text: str = ""
    parsed_rules: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.must_be_first and self.must_be_last:
            raise ValueError("An order cannot be both must-be-first and must-be-last.")


def pallet_slots_for(weight_kg: float, no_stack: bool) -> int:
    base = math.ceil(weight_kg / 1000)
    return base * 2 if no_stack else base


@dataclass(slots=True)
class Order:
    """A cleaned delivery request as consumed by the scheduling engine."""

    order_id: str
    weight_kg: float
    coordinates: Optional[Coordinates]
    constraints: RouteConstraints = field(default_factory=RouteConstraints)
    volume_m3: Optional[float] = None
    customer_name: str = ""
    address: str = ""
    effective_pallet_slots: int = -1
    cleaning_warnings: list[str] = field(default_factory=list)
    parent_order_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.weight_kg) or self.weight_kg <= 0:
            raise ValueError(f"Order '{self.order_id}' must have a positive, finite weight.")
        if self.effective_pallet_slots < 0:
            self.effective_pallet_slots = pallet_slots_for(self.weight_kg, self.constraints.no_stack)

    @property
    def window_end(self) -> Optional[str]:
        window = self.constraints.time_window
        return window.end if window else None


@dataclass(slots=True, frozen=True)
class VehicleDefinition:
    """Static description of a vehicle type and its pricing."""

    id: str
    name: str
    category: VehicleCategory
    max_weight_kg: float
    pallet_slots: int
    base_price: float
    price_per_km: float
    enabled: bool = True
    max_volume_m3: Optional[float] = None
    fixed_price: Optional[float] = None
    fuel_cost_per_km: Optional[float] = None
    toll_per_km: Optional[float] = None
    drop_charge: Optional[float] = None
    return_empty_rate: Optional[float] = None
    notes: str = ""


@dataclass(slots=True, frozen=True)
class TripCandidate:
    """Working bin during packing; every insertion yields a new candidate."""

    orders: tuple[Order, ...] = ()
    total_weight_kg: float = 0.0
    total_volume_m3: float = 0.0
    total_pallet_slots: int = 0
    required_vehicle_category: Optional[VehicleCategory] = None
    forced: bool = False

    def with_order(self, order: Order) -> "TripCandidate":
        return replace(
            self,
            orders=self.orders + (order,),
            total_weight_kg=self.total_weight_kg + order.weight_kg,
            total_volume_m3=self.total_volume_m3 + (order.volume_m3 or 0.0),
            total_pallet_slots=self.total_pallet_slots + order.effective_pallet_slots,
        )

    @property
    def stop_count(self) -> int:
        return len(self.orders)


@dataclass(slots=True)
class CostBreakdown:
    total: float
    fuel: float
    toll: float
    labor: float
    drop_charges: float = 0.0
    return_empty: float = 0.0
    other: float = 0.0
    market_reference: Optional[tuple[float, float]] = None


@dataclass(slots=True)
class Stop:
    sequence: int
    order: Order
    eta: str
    etd: str
    distance_from_prev_km: float
    duration_from_prev_h: float
    cumulative_distance_km: float
    cumulative_duration_h: float
    is_on_time: bool
    delay_minutes: Optional[float] = None


@dataclass(slots=True)
class Trip:
    """A finalized itinerary for one vehicle."""

    trip_id: str
    vehicle_type: str
    vehicle_category: VehicleCategory
    stops: list[Stop]
    departure_time: str
    return_time: str
    total_distance_km: float
    total_duration_h: float
    total_weight_kg: float
    total_volume_m3: float
    total_pallet_slots: int
    load_rate_weight: float
    load_rate_pallet: float
    estimated_cost: float
    cost_breakdown: CostBreakdown
    is_valid: bool
    has_risk: bool
    risk_stops: list[int]
    reason: str
    required_vehicle_category: Optional[VehicleCategory] = None
    cluster_id: Optional[str] = None
    forced: bool = False
    vehicle_id: Optional[str] = None

    @property
    def order_ids(self) -> list[str]:
        return [stop.order.order_id for stop in self.stops]


@dataclass(slots=True, frozen=True)
class AuditIssue:
    trip_id: str
    type: IssueType
    severity: Severity
    message: str


@dataclass(slots=True)
class AuditResult:
    is_valid: bool
    score: float
    issues: list[AuditIssue]
    suggestions: list[str]

    def issue_types(self) -> set[str]:
        return {issue.type for issue in self.issues}


@dataclass(slots=True, frozen=True)
class TuningState:
    """Knobs adjusted by the self-healing loop between attempts."""

    overload_tolerance: float = 0.1
    stop_count_bias: int = 0
    cluster_bias: float = 0.0
    time_buffer: float = 0.0


@dataclass(slots=True, frozen=True)
class ClusteringConfig:
    method: Literal["sweep", "distance", "hybrid"] = "sweep"
    preset: Optional[Literal["urban", "suburban", "long_haul", "custom"]] = None
    max_angle_span: Optional[float] = None
    distance_thresholds: Optional[tuple[float, ...]] = None


@dataclass(slots=True, frozen=True)
class ScheduleOptions:
    max_stops: int = 8
    start_time: str = "06:00"
    deadline: str = "20:00"
    factory_deadline: str = "17:00"
    unloading_minutes: float = 30.0
    cost_mode: CostMode = "mileage"
    show_market_reference: bool = True
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    tuning: TuningState = field(default_factory=TuningState)

    def effective_max_stops(self) -> int:
        return max(1, self.max_stops + self.tuning.stop_count_bias)


@dataclass(slots=True)
class OrderCluster:
    id: str
    orders: list[Order]
    center_lat: float
    center_lng: float
    avg_angle: float
    avg_distance_km: float


@dataclass(slots=True)
class ScheduleSummary:
    total_orders: int
    total_trips: int
    total_distance_km: float
    total_duration_h: float
    total_cost: float
    cost_breakdown: dict[str, float]
    avg_load_rate_weight: float
    avg_load_rate_pallet: float
    vehicle_breakdown: dict[str, int]
    risk_orders: list[str]
    invalid_orders: list[str]
    constraints_summary: dict[str, int]
    suggestions: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Scheme:
    id: str
    name: str
    tag: str
    description: str
    trips: list[Trip]
    summary: ScheduleSummary
    score: float
    attempts: int = 1


@dataclass(slots=True)
class ScheduleResult:
    task_id: str
    status: Literal["completed", "failed"]
    schemes: list[Scheme]
    trips: list[Trip]
    summary: Optional[ScheduleSummary]
    created_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    task_id: str
    stage: int
    stage_name: str
    percent: float
    message: str
