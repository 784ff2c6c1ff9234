"""Pydantic request/response models for scheduling endpoints."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.domain import (
    ClusteringConfig,
    Coordinates,
    CostBreakdown,
    Order,
    RouteConstraints,
    ScheduleOptions,
    ScheduleResult,
    ScheduleSummary,
    Scheme,
    Stop,
    TimeWindow,
    Trip,
    TuningState,
    VehicleDefinition,
)
from ..services.clock import is_valid_clock
from ..services.scheduling.options import default_options, normalize_options
from ..services.vehicles.fleet import canonical_category, default_fleet, resolve_requirement


class CoordinatesModel(BaseModel):
    lng: float = Field(..., ge=-180.0, le=180.0)
    lat: float = Field(..., ge=-90.0, le=90.0)

    def to_domain(self) -> Coordinates:
        return Coordinates(lng=self.lng, lat=self.lat)


class TimeWindowModel(BaseModel):
    start: str = Field(..., description="Earliest delivery time (HH:MM).")
    end: str = Field(..., description="Latest delivery time (HH:MM).")

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        if not is_valid_clock(value):
            raise ValueError(f"'{value}' is not a valid HH:MM time")
        return value.strip()


class RouteConstraintsModel(BaseModel):
    required_vehicle_type: Optional[str] = Field(
        default=None,
        description="Vehicle category or vehicle name (e.g. 'flying_wing', '飞翼', '3.8米').",
    )
    no_stack: bool = False
    must_be_first: bool = False
    must_be_last: bool = False
    single_trip_only: bool = False
    exclude_saturday: bool = False
    exclude_sunday: bool = False
    time_window: Optional[TimeWindowModel] = None
    raw_text: str = ""
    parsed_rules: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_position(self) -> "RouteConstraintsModel":
        if self.must_be_first and self.must_be_last:
            raise ValueError("An order cannot be both must_be_first and must_be_last.")
        return self


class OrderModel(BaseModel):
    order_id: str = Field(..., min_length=1)
    weight_kg: float = Field(..., gt=0, allow_inf_nan=False)
    volume_m3: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    coordinates: Optional[CoordinatesModel] = Field(
        default=None,
        description="Geocoded location; orders without one are reported as unscheduled.",
    )
    constraints: RouteConstraintsModel = Field(default_factory=RouteConstraintsModel)
    customer_name: str = ""
    address: str = ""
    pallet_slots: Optional[int] = Field(default=None, ge=0, description="Overrides the weight-based estimate.")
    cleaning_warnings: List[str] = Field(default_factory=list)

    def to_domain(self, vehicles: List[VehicleDefinition]) -> Order:
        constraints = self.constraints
        window = constraints.time_window
        return Order(
            order_id=self.order_id,
            weight_kg=self.weight_kg,
            coordinates=self.coordinates.to_domain() if self.coordinates else None,
            constraints=RouteConstraints(
                required_vehicle_category=resolve_requirement(constraints.required_vehicle_type, vehicles),
                no_stack=constraints.no_stack,
                must_be_first=constraints.must_be_first,
                must_be_last=constraints.must_be_last,
                single_trip_only=constraints.single_trip_only,
                exclude_saturday=constraints.exclude_saturday,
                exclude_sunday=constraints.exclude_sunday,
                time_window=TimeWindow(start=window.start, end=window.end) if window else None,
                raw_text=constraints.raw_text,
                parsed_rules=list(constraints.parsed_rules),
            ),
            volume_m3=self.volume_m3,
            customer_name=self.customer_name,
            address=self.address,
            effective_pallet_slots=self.pallet_slots if self.pallet_slots is not None else -1,
            cleaning_warnings=list(self.cleaning_warnings),
        )


class VehicleModel(BaseModel):
    id: str
    name: str
    category: str = Field(default="box", description="Body type; English or Chinese names are accepted.")
    enabled: bool = True
    max_weight_kg: float = Field(..., gt=0)
    max_volume_m3: Optional[float] = Field(default=None, gt=0)
    pallet_slots: int = Field(..., ge=0)
    base_price: float = Field(..., ge=0)
    price_per_km: float = Field(..., ge=0)
    fixed_price: Optional[float] = Field(default=None, ge=0)
    fuel_cost_per_km: Optional[float] = Field(default=None, ge=0)
    toll_per_km: Optional[float] = Field(default=None, ge=0)
    drop_charge: Optional[float] = Field(default=None, ge=0)
    return_empty_rate: Optional[float] = Field(default=None, ge=0)
    notes: str = ""

    @field_validator("category")
    @classmethod
    def validate_category(cls, value: str) -> str:
        category = canonical_category(value)
        if category is None:
            raise ValueError(f"Unknown vehicle category '{value}'")
        return category.value

    def to_domain(self) -> VehicleDefinition:
        return VehicleDefinition(
            id=self.id,
            name=self.name,
            category=canonical_category(self.category),
            max_weight_kg=self.max_weight_kg,
            pallet_slots=self.pallet_slots,
            base_price=self.base_price,
            price_per_km=self.price_per_km,
            enabled=self.enabled,
            max_volume_m3=self.max_volume_m3,
            fixed_price=self.fixed_price,
            fuel_cost_per_km=self.fuel_cost_per_km,
            toll_per_km=self.toll_per_km,
            drop_charge=self.drop_charge,
            return_empty_rate=self.return_empty_rate,
            notes=self.notes,
        )

    @classmethod
    def from_domain(cls, vehicle: VehicleDefinition) -> "VehicleModel":
        return cls(
            id=vehicle.id,
            name=vehicle.name,
            category=vehicle.category.value,
            enabled=vehicle.enabled,
            max_weight_kg=vehicle.max_weight_kg,
            max_volume_m3=vehicle.max_volume_m3,
            pallet_slots=vehicle.pallet_slots,
            base_price=vehicle.base_price,
            price_per_km=vehicle.price_per_km,
            fixed_price=vehicle.fixed_price,
            fuel_cost_per_km=vehicle.fuel_cost_per_km,
            toll_per_km=vehicle.toll_per_km,
            drop_charge=vehicle.drop_charge,
            return_empty_rate=vehicle.return_empty_rate,
            notes=vehicle.notes,
        )


class ClusteringOptionsModel(BaseModel):
    method: Literal["sweep", "distance", "hybrid"] = "sweep"
    preset: Optional[Literal["urban", "suburban", "long_haul", "custom"]] = None
    max_angle_span: Optional[float] = Field(default=None, gt=0, le=360, allow_inf_nan=False)
    distance_thresholds: Optional[List[float]] = None


class TuningModel(BaseModel):
    overload_tolerance: float = Field(default=0.1, ge=0, allow_inf_nan=False)
    stop_count_bias: int = 0
    cluster_bias: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    time_buffer: float = Field(default=0.0, ge=0, allow_inf_nan=False)


class ScheduleOptionsModel(BaseModel):
    """Optional overrides; malformed values fall back to defaults instead of failing."""

    max_stops: Optional[int] = None
    start_time: Optional[str] = None
    deadline: Optional[str] = None
    factory_deadline: Optional[str] = None
    unloading_minutes: Optional[float] = Field(default=None, allow_inf_nan=False)
    cost_mode: Optional[str] = None
    show_market_reference: Optional[bool] = None
    clustering: Optional[ClusteringOptionsModel] = None
    tuning: Optional[TuningModel] = None

    def to_domain(self) -> ScheduleOptions:
        overrides = {
            name: value
            for name, value in (
                ("max_stops", self.max_stops),
                ("start_time", self.start_time),
                ("deadline", self.deadline),
                ("factory_deadline", self.factory_deadline),
                ("unloading_minutes", self.unloading_minutes),
                ("cost_mode", self.cost_mode),
                ("show_market_reference", self.show_market_reference),
            )
            if value is not None
        }
        if self.clustering is not None:
            overrides["clustering"] = ClusteringConfig(
                method=self.clustering.method,
                preset=self.clustering.preset,
                max_angle_span=self.clustering.max_angle_span,
                distance_thresholds=tuple(self.clustering.distance_thresholds)
                if self.clustering.distance_thresholds
                else None,
            )
        if self.tuning is not None:
            overrides["tuning"] = TuningState(**self.tuning.model_dump())
        return normalize_options(replace(default_options(), **overrides))


class ScheduleRequest(BaseModel):
    orders: List[OrderModel]
    vehicles: Optional[List[VehicleModel]] = Field(
        default=None, description="Fleet to plan with; the default fleet is used when omitted."
    )
    depot: Optional[CoordinatesModel] = Field(default=None, description="Defaults to the configured depot.")
    options: Optional[ScheduleOptionsModel] = None
    strategy: Literal["greedy", "kmeans"] = "greedy"

    def to_domain(
        self,
    ) -> tuple[List[Order], List[VehicleDefinition], Optional[Coordinates], ScheduleOptions]:
        """Convert the payload; unknown vehicle requirements raise ``ValueError``."""
        if self.vehicles is None:
            vehicles = default_fleet()
        else:
            vehicles = [vehicle.to_domain() for vehicle in self.vehicles]
        orders = [order.to_domain(vehicles) for order in self.orders]
        depot = self.depot.to_domain() if self.depot else None
        options = self.options.to_domain() if self.options else default_options()
        return orders, vehicles, depot, options


class MarketReferenceModel(BaseModel):
    min: float
    max: float


class CostBreakdownModel(BaseModel):
    total: float
    fuel: float
    toll: float
    labor: float
    drop_charges: float
    return_empty: float
    other: float
    market_reference: Optional[MarketReferenceModel] = None


class StopModel(BaseModel):
    sequence: int
    order_id: str
    parent_order_id: Optional[str] = None
    customer_name: str
    weight_kg: float
    eta: str
    etd: str
    distance_from_prev_km: float
    duration_from_prev_h: float
    cumulative_distance_km: float
    cumulative_duration_h: float
    is_on_time: bool
    delay_minutes: Optional[float] = None
    cleaning_warnings: List[str] = Field(default_factory=list)


class TripModel(BaseModel):
    trip_id: str
    vehicle_type: str
    vehicle_category: str
    vehicle_id: Optional[str] = None
    cluster_id: Optional[str] = None
    stops: List[StopModel]
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
    cost_breakdown: CostBreakdownModel
    is_valid: bool
    has_risk: bool
    risk_stops: List[int]
    reason: str
    forced: bool = False


class ScheduleSummaryModel(BaseModel):
    total_orders: int
    total_trips: int
    total_distance_km: float
    total_duration_h: float
    total_cost: float
    cost_breakdown: Dict[str, float]
    avg_load_rate_weight: float
    avg_load_rate_pallet: float
    vehicle_breakdown: Dict[str, int]
    risk_orders: List[str]
    invalid_orders: List[str]
    constraints_summary: Dict[str, int]
    suggestions: List[str] = Field(default_factory=list)


class SchemeModel(BaseModel):
    id: str
    name: str
    tag: str
    description: str
    score: float
    attempts: int
    trips: List[TripModel]
    summary: ScheduleSummaryModel


class ScheduleResponse(BaseModel):
    task_id: str
    status: str
    schemes: List[SchemeModel]
    trips: List[TripModel]
    summary: Optional[ScheduleSummaryModel] = None
    created_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None


class StrategyModel(BaseModel):
    id: str
    name: str
    description: str
    suitable_for: str


def _cost_to_model(cost: CostBreakdown) -> CostBreakdownModel:
    reference = cost.market_reference
    return CostBreakdownModel(
        total=cost.total,
        fuel=cost.fuel,
        toll=cost.toll,
        labor=cost.labor,
        drop_charges=cost.drop_charges,
        return_empty=cost.return_empty,
        other=cost.other,
        market_reference=MarketReferenceModel(min=reference[0], max=reference[1]) if reference else None,
    )


def _stop_to_model(stop: Stop) -> StopModel:
    return StopModel(
        sequence=stop.sequence,
        order_id=stop.order.order_id,
        parent_order_id=stop.order.parent_order_id,
        customer_name=stop.order.customer_name,
        weight_kg=stop.order.weight_kg,
        eta=stop.eta,
        etd=stop.etd,
        distance_from_prev_km=stop.distance_from_prev_km,
        duration_from_prev_h=stop.duration_from_prev_h,
        cumulative_distance_km=stop.cumulative_distance_km,
        cumulative_duration_h=stop.cumulative_duration_h,
        is_on_time=stop.is_on_time,
        delay_minutes=stop.delay_minutes,
        cleaning_warnings=list(stop.order.cleaning_warnings),
    )


def trip_to_model(trip: Trip) -> TripModel:
    return TripModel(
        trip_id=trip.trip_id,
        vehicle_type=trip.vehicle_type,
        vehicle_category=trip.vehicle_category.value,
        vehicle_id=trip.vehicle_id,
        cluster_id=trip.cluster_id,
        stops=[_stop_to_model(stop) for stop in trip.stops],
        departure_time=trip.departure_time,
        return_time=trip.return_time,
        total_distance_km=trip.total_distance_km,
        total_duration_h=trip.total_duration_h,
        total_weight_kg=trip.total_weight_kg,
        total_volume_m3=trip.total_volume_m3,
        total_pallet_slots=trip.total_pallet_slots,
        load_rate_weight=round(trip.load_rate_weight, 4),
        load_rate_pallet=round(trip.load_rate_pallet, 4),
        estimated_cost=trip.estimated_cost,
        cost_breakdown=_cost_to_model(trip.cost_breakdown),
        is_valid=trip.is_valid,
        has_risk=trip.has_risk,
        risk_stops=list(trip.risk_stops),
        reason=trip.reason,
        forced=trip.forced,
    )


def summary_to_model(summary: ScheduleSummary) -> ScheduleSummaryModel:
    return ScheduleSummaryModel(
        total_orders=summary.total_orders,
        total_trips=summary.total_trips,
        total_distance_km=summary.total_distance_km,
        total_duration_h=summary.total_duration_h,
        total_cost=summary.total_cost,
        cost_breakdown=dict(summary.cost_breakdown),
        avg_load_rate_weight=round(summary.avg_load_rate_weight, 4),
        avg_load_rate_pallet=round(summary.avg_load_rate_pallet, 4),
        vehicle_breakdown=dict(summary.vehicle_breakdown),
        risk_orders=list(summary.risk_orders),
        invalid_orders=list(summary.invalid_orders),
        constraints_summary=dict(summary.constraints_summary),
        suggestions=list(summary.suggestions),
    )


def _scheme_to_model(scheme: Scheme) -> SchemeModel:
    return SchemeModel(
        id=scheme.id,
        name=scheme.name,
        tag=scheme.tag,
        description=scheme.description,
        score=scheme.score,
        attempts=scheme.attempts,
        trips=[trip_to_model(trip) for trip in scheme.trips],
        summary=summary_to_model(scheme.summary),
    )


def result_to_response(result: ScheduleResult) -> ScheduleResponse:
    return ScheduleResponse(
        task_id=result.task_id,
        status=result.status,
        schemes=[_scheme_to_model(scheme) for scheme in result.schemes],
        trips=[trip_to_model(trip) for trip in result.trips],
        summary=summary_to_model(result.summary) if result.summary else None,
        created_at=result.created_at,
        completed_at=result.completed_at,
        error=result.error,
    )
