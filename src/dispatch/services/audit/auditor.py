"""Post-hoc compliance audit of produced trips."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ...config import settings
from ...models.domain import AuditIssue, AuditResult, Coordinates, ScheduleOptions, Trip, VehicleDefinition
from ..routing.timeline import simulate
from ..vehicles.selection import INEFFICIENT_MARKER

MAX_SCORE = 100.0
PENALTY_VEHICLE_MISMATCH = 20.0
PENALTY_OVERLOAD_CRITICAL = 20.0
PENALTY_OVERLOAD_WARNING = 5.0
PENALTY_INEFFICIENT = 15.0
PENALTY_TIME_CRITICAL = 30.0
OVERLOAD_CRITICAL_RATE = 1.1


@dataclass(slots=True)
class _TripFindings:
    issues: list[AuditIssue] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    penalty: float = 0.0


def _audit_vehicle(trip: Trip, vehicle: VehicleDefinition | None, findings: _TripFindings) -> bool:
    if vehicle is None:
        findings.issues.append(
            AuditIssue(trip.trip_id, "vehicle_mismatch", "critical", f"Vehicle '{trip.vehicle_type}' is not in the fleet.")
        )
        findings.penalty += PENALTY_VEHICLE_MISMATCH
        return False
    required = trip.required_vehicle_category
    if required is not None and vehicle.category != required:
        findings.issues.append(
            AuditIssue(
                trip.trip_id,
                "vehicle_mismatch",
                "critical",
                f"Trip requires a '{required.value}' vehicle but uses {vehicle.name} ({vehicle.category.value}).",
            )
        )
        findings.penalty += PENALTY_VEHICLE_MISMATCH
    return True


def _audit_load(trip: Trip, vehicle: VehicleDefinition, findings: _TripFindings) -> None:
    load_rate = trip.total_weight_kg / vehicle.max_weight_kg if vehicle.max_weight_kg > 0 else float("inf")
    if load_rate > OVERLOAD_CRITICAL_RATE:
        findings.issues.append(
            AuditIssue(
                trip.trip_id,
                "overload",
                "critical",
                f"{vehicle.name} is severely overloaded ({load_rate:.0%}), above the {OVERLOAD_CRITICAL_RATE:.0%} limit.",
            )
        )
        findings.penalty += PENALTY_OVERLOAD_CRITICAL
    elif load_rate > 1.0:
        findings.issues.append(
            AuditIssue(
                trip.trip_id,
                "overload",
                "warning",
                f"{vehicle.name} is slightly overloaded ({load_rate:.0%}), within tolerance.",
            )
        )
        findings.penalty += PENALTY_OVERLOAD_WARNING

    light_long_haul = (
        trip.total_distance_km > settings.inefficient_distance_km and load_rate < settings.inefficient_load_rate
    )
    if light_long_haul or INEFFICIENT_MARKER in trip.reason:
        findings.issues.append(
            AuditIssue(
                trip.trip_id,
                "inefficient",
                "critical",
                f"{vehicle.name} runs {trip.total_distance_km:.0f}km at {load_rate:.0%} load; regroup the orders.",
            )
        )
        findings.penalty += PENALTY_INEFFICIENT


def _audit_time_windows(trip: Trip, depot: Coordinates, options: ScheduleOptions, findings: _TripFindings) -> None:
    timeline = simulate([stop.order for stop in trip.stops], depot, options)
    has_critical = False
    for timing in timeline.stops:
        order = timing.order
        if order.window_end is None or timing.delay_minutes <= 0:
            continue
        delay = round(timing.delay_minutes)
        label = order.customer_name or order.order_id
        if timing.delay_minutes > settings.critical_delay_minutes:
            findings.issues.append(
                AuditIssue(trip.trip_id, "time_conflict", "critical", f"{label} arrives {delay} min late; not acceptable.")
            )
            has_critical = True
        else:
            findings.issues.append(
                AuditIssue(trip.trip_id, "time_conflict", "warning", f"{label} arrives {delay} min late.")
            )
            findings.suggestions.append(
                f"Move the departure about {delay} min earlier, or ask the customer of {order.order_id} "
                f"to accept a later delivery."
            )
    if has_critical:
        findings.penalty += PENALTY_TIME_CRITICAL


def audit_schedule(
    trips: Sequence[Trip],
    depot: Coordinates,
    options: ScheduleOptions,
    vehicles: Sequence[VehicleDefinition],
) -> AuditResult:
    """Score a plan: 100 minus penalties, invalid whenever a critical issue exists."""

    by_id = {vehicle.id: vehicle for vehicle in vehicles}
    by_name = {(vehicle.name, vehicle.category): vehicle for vehicle in vehicles}
    issues: list[AuditIssue] = []
    suggestions: list[str] = []
    score = MAX_SCORE

    for trip in trips:
        findings = _TripFindings()
        if trip.vehicle_id is not None:
            vehicle = by_id.get(trip.vehicle_id)
        else:
            vehicle = by_name.get((trip.vehicle_type, trip.vehicle_category))
        if _audit_vehicle(trip, vehicle, findings):
            _audit_load(trip, vehicle, findings)
            _audit_time_windows(trip, depot, options, findings)
        issues.extend(findings.issues)
        suggestions.extend(findings.suggestions)
        score -= findings.penalty

    return AuditResult(
        is_valid=not any(issue.severity == "critical" for issue in issues),
        score=max(0.0, score),
        issues=issues,
        suggestions=list(dict.fromkeys(suggestions)),
    )
