import threading

import pytest

from src.dispatch.models.domain import (
    AuditIssue,
    AuditResult,
    Coordinates,
    Order,
    RouteConstraints,
    ScheduleOptions,
    TimeWindow,
    TuningState,
)
from src.dispatch.services.scheduling import orchestrator
from src.dispatch.services.scheduling.errors import SchedulingCancelledError
from src.dispatch.services.scheduling.orchestrator import next_tuning, run_self_healing
from src.dispatch.services.vehicles.fleet import default_fleet

DEPOT = Coordinates(lng=120.9427, lat=31.3256)


def _order(order_id: str, dlat: float, window_end: str | None = None, weight: float = 2000) -> Order:
    return Order(
        order_id=order_id,
        weight_kg=weight,
        coordinates=Coordinates(lng=DEPOT.lng, lat=DEPOT.lat + dlat),
        constraints=RouteConstraints(time_window=TimeWindow("00:00", window_end) if window_end else None),
    )


def _run(orders, **kwargs):
    return run_self_healing(orders, depot=DEPOT, vehicles=default_fleet(), options=ScheduleOptions(), **kwargs)


def test_overload_tightens_tolerance_and_stop_count():
    tuned = next_tuning(TuningState(overload_tolerance=0.1), {"overload"})

    assert tuned.overload_tolerance == pytest.approx(0.05)
    assert tuned.stop_count_bias == -1
    assert tuned.time_buffer == 0


def test_overload_tolerance_never_goes_negative():
    assert next_tuning(TuningState(overload_tolerance=0.02), {"overload"}).overload_tolerance == 0.0


def test_time_conflict_adds_buffer():
    assert next_tuning(TuningState(time_buffer=15), {"time_conflict"}).time_buffer == 30


def test_inefficiency_allows_more_stops():
    assert next_tuning(TuningState(), {"inefficient"}).stop_count_bias == 1


def test_rules_combine():
    tuned = next_tuning(TuningState(), {"overload", "inefficient", "time_conflict", "vehicle_mismatch"})

    assert tuned.stop_count_bias == 0
    assert tuned.time_buffer == 15
    assert tuned.overload_tolerance == pytest.approx(0.05)


def test_valid_plan_needs_one_attempt():
    done = _run([_order("A", 0.02), _order("B", 0.03)])

    assert done.attempts == 1
    assert done.audit.is_valid
    assert len(done.tuning_history) == 1


def test_impossible_window_exhausts_retries():
    # about 55km out; the window closes shortly after departure
    done = _run([_order("FAR", 0.5, window_end="06:10")])

    assert done.attempts == 3
    assert not done.audit.is_valid
    assert [tuning.time_buffer for tuning in done.tuning_history] == [0, 15, 30]
    assert done.trips[0].has_risk


def test_zero_retries_returns_first_attempt():
    done = _run([_order("FAR", 0.5, window_end="06:10")], max_retries=0)

    assert done.attempts == 1


def test_retry_uses_adjusted_tuning(monkeypatch):
    audits = iter(
        [
            AuditResult(False, 80, [AuditIssue("T001", "overload", "critical", "too heavy")], []),
            AuditResult(True, 100, [], ["ship earlier"]),
        ]
    )
    monkeypatch.setattr(orchestrator, "audit_schedule", lambda *args, **kwargs: next(audits))

    done = _run([_order("A", 0.02)])

    assert done.attempts == 2
    assert done.tuning_history[1].overload_tolerance == pytest.approx(done.tuning_history[0].overload_tolerance - 0.05)
    assert done.tuning_history[1].stop_count_bias == -1
    assert done.suggestions == ("ship earlier",)


def test_cancelled_before_first_attempt():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(SchedulingCancelledError):
        _run([_order("A", 0.02)], cancel_event=cancel)


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValueError):
        _run([_order("A", 0.02)], strategy="simulated_annealing")
