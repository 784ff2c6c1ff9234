import math
import threading
from dataclasses import replace

import pytest

from src.dispatch.models.domain import (
    Coordinates,
    Order,
    RouteConstraints,
    ScheduleOptions,
    TimeWindow,
    TuningState,
    VehicleCategory,
    VehicleDefinition,
)
from src.dispatch.services.clock import parse_clock
from src.dispatch.services.scheduling.errors import NoEnabledVehiclesError, NoSchedulableOrdersError
from src.dispatch.services.scheduling.runner import run_schemes
from src.dispatch.services.vehicles.fleet import default_fleet

DEPOT = Coordinates(lng=120.9427, lat=31.3256)

THREE_TONNER = VehicleDefinition(
    id="v-3t",
    name="3t",
    category=VehicleCategory.BOX,
    max_weight_kg=3000,
    pallet_slots=10,
    base_price=480,
    price_per_km=2.2,
)


def _order(order_id: str, weight: float, dlat: float, dlng: float = 0.0, window_end: str | None = None) -> Order:
    return Order(
        order_id=order_id,
        weight_kg=weight,
        coordinates=Coordinates(lng=DEPOT.lng + dlng, lat=DEPOT.lat + dlat),
        constraints=RouteConstraints(time_window=TimeWindow("00:00", window_end) if window_end else None),
    )


def _scattered(count: int) -> list[Order]:
    return [
        _order(
            f"O{i:02d}",
            weight=300 + (i * 137) % 900,
            dlat=0.15 * math.cos(i * 2.4) * (0.3 + (i % 4) / 4),
            dlng=0.15 * math.sin(i * 2.4) * (0.3 + (i % 4) / 4),
        )
        for i in range(count)
    ]


def _scheduled_ids(scheme) -> list[str]:
    return [stop.order.order_id for trip in scheme.trips for stop in trip.stops]


def test_three_small_orders_share_one_trip():
    orders = [
        _order("A", 800, 0.03, 0.02),
        _order("B", 900, 0.04, 0.03),
        _order("C", 1200, 0.02, 0.04),
    ]

    result = run_schemes(orders, [THREE_TONNER], depot=DEPOT)

    for scheme in result.schemes:
        (trip,) = scheme.trips
        assert sorted(trip.order_ids) == ["A", "B", "C"]
        assert trip.load_rate_weight == pytest.approx(2900 / 3000)
        assert trip.vehicle_type == "3t"


def test_oversized_order_is_split_across_trips():
    result = run_schemes([_order("BIG", 9000, 0.03)], [THREE_TONNER], depot=DEPOT)

    scheme = result.schemes[0]
    assert len(scheme.trips) == 3
    assert sum(trip.total_weight_kg for trip in scheme.trips) == pytest.approx(9000)
    assert all(stop.order.parent_order_id == "BIG" for trip in scheme.trips for stop in trip.stops)
    assert sorted(trip.total_weight_kg for trip in scheme.trips) == pytest.approx([2940, 2940, 3120])


def test_unreachable_window_is_reported_as_risk():
    # about 50km out; the window closes ten minutes after departure
    result = run_schemes([_order("LATE", 1000, 0.45, window_end="06:10")], default_fleet(), depot=DEPOT)

    (trip,) = result.trips
    assert trip.has_risk
    assert trip.risk_stops == [1]
    assert result.summary.risk_orders == ["LATE"]
    assert all(scheme.attempts == 3 for scheme in result.schemes)


def test_schemes_are_returned_in_profile_order():
    result = run_schemes(_scattered(6), default_fleet(), depot=DEPOT)

    assert result.status == "completed"
    assert [scheme.id for scheme in result.schemes] == ["cost_first", "strict_constraint", "time_safe"]
    assert [scheme.tag for scheme in result.schemes] == ["economy", "robust", "recommended"]
    assert result.trips == result.schemes[0].trips
    assert result.summary == result.schemes[0].summary
    assert result.completed_at is not None


def test_service_assurance_scheme_adds_unloading_slack():
    result = run_schemes([_order("A", 500, 0.05)], default_fleet(), depot=DEPOT)

    schemes = {scheme.id: scheme for scheme in result.schemes}
    strict_stop = schemes["strict_constraint"].trips[0].stops[0]
    safe_stop = schemes["time_safe"].trips[0].stops[0]
    assert parse_clock(strict_stop.etd) - parse_clock(strict_stop.eta) == 30
    assert parse_clock(safe_stop.etd) - parse_clock(safe_stop.eta) == 45


def test_every_order_is_scheduled_exactly_once():
    orders = _scattered(24)

    result = run_schemes(orders, default_fleet(), depot=DEPOT)

    for scheme in result.schemes:
        assert sorted(_scheduled_ids(scheme)) == sorted(order.order_id for order in orders)
        assert [trip.trip_id for trip in scheme.trips] == [f"T{i:03d}" for i in range(1, len(scheme.trips) + 1)]


def test_kmeans_strategy_covers_every_order():
    orders = _scattered(20)

    result = run_schemes(orders, default_fleet(), depot=DEPOT, strategy="kmeans")

    for scheme in result.schemes:
        assert sorted(_scheduled_ids(scheme)) == sorted(order.order_id for order in orders)


def test_orders_without_coordinates_are_listed_invalid():
    orders = [_order("A", 500, 0.02), Order(order_id="LOST", weight_kg=200, coordinates=None)]

    result = run_schemes(orders, default_fleet(), depot=DEPOT)

    assert result.summary.invalid_orders == ["LOST"]
    assert result.summary.total_orders == 2
    assert _scheduled_ids(result.schemes[0]) == ["A"]


def test_no_enabled_vehicles_is_rejected():
    fleet = [replace(vehicle, enabled=False) for vehicle in default_fleet()]

    with pytest.raises(NoEnabledVehiclesError):
        run_schemes([_order("A", 500, 0.02)], fleet, depot=DEPOT)


def test_orders_all_without_coordinates_are_rejected():
    with pytest.raises(NoSchedulableOrdersError):
        run_schemes([Order(order_id="LOST", weight_kg=200, coordinates=None)], default_fleet(), depot=DEPOT)


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValueError):
        run_schemes([_order("A", 500, 0.02)], default_fleet(), depot=DEPOT, strategy="genetic")


def test_repeated_runs_give_identical_plans():
    orders = _scattered(15)

    first = run_schemes(orders, default_fleet(), depot=DEPOT)
    second = run_schemes(orders, default_fleet(), depot=DEPOT)

    for a, b in zip(first.schemes, second.schemes):
        assert [trip.order_ids for trip in a.trips] == [trip.order_ids for trip in b.trips]
        assert [trip.estimated_cost for trip in a.trips] == [trip.estimated_cost for trip in b.trips]


def test_malformed_options_fall_back_to_defaults():
    options = ScheduleOptions(max_stops=0, start_time="7 o'clock", cost_mode="barter")

    result = run_schemes([_order("A", 500, 0.02)], default_fleet(), depot=DEPOT, options=options)

    assert result.trips[0].departure_time == "06:00"


def test_progress_events_are_delivered():
    events = []
    finished = threading.Event()

    def receive(event):
        events.append(event)
        if event.percent == 100:
            finished.set()

    run_schemes(_scattered(6), default_fleet(), depot=DEPOT, on_progress=receive, task_id="task-1")

    assert finished.wait(timeout=5)
    assert all(event.task_id == "task-1" for event in events)
    assert [event.stage for event in events] == sorted(event.stage for event in events)
    assert events[0].stage == 1
    assert events[-1].stage_name == "Generating report"
    assert {event.stage for event in events} == {1, 2, 3, 4, 5}


def test_failing_progress_receiver_does_not_break_scheduling():
    def receive(event):
        raise RuntimeError("receiver down")

    result = run_schemes([_order("A", 500, 0.02)], default_fleet(), depot=DEPOT, on_progress=receive)

    assert result.status == "completed"


def test_non_finite_options_fall_back_to_defaults():
    options = ScheduleOptions(unloading_minutes=math.nan, tuning=TuningState(time_buffer=math.inf))

    result = run_schemes([_order("A", 500, 0.02)], default_fleet(), depot=DEPOT, options=options)

    (trip,) = result.trips
    assert trip.order_ids == ["A"]
    assert trip.return_time != trip.departure_time
