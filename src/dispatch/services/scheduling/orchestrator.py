"""Self-healing scheduling loop.

Each attempt runs the full pipeline and audits the result. Critical audit
issues adjust the tuning knobs and trigger another attempt, up to
``max_retries`` extra attempts. The last attempt is returned even when it is
still imperfect.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import AuditResult, Coordinates, Order, ScheduleOptions, Trip, TuningState, VehicleDefinition
from ..audit.auditor import audit_schedule
from .errors import raise_if_cancelled
from .planner import ClusterProgress
from .strategies import StrategyId, get_solver


@dataclass(slots=True, frozen=True)
class Attempt:
    number: int
    tuning: TuningState


@dataclass(slots=True, frozen=True)
class Done:
    trips: list[Trip]
    audit: AuditResult
    attempts: int
    tuning_history: tuple[TuningState, ...]
    suggestions: tuple[str, ...]


def next_tuning(tuning: TuningState, issue_types: set[str]) -> TuningState:
    """Adjust knobs for every issue kind present; several rules may apply at once."""

    overload_tolerance = tuning.overload_tolerance
    stop_count_bias = tuning.stop_count_bias
    time_buffer = tuning.time_buffer
    if "overload" in issue_types:
        overload_tolerance = max(0.0, round(overload_tolerance - settings.overload_tolerance_step, 4))
        stop_count_bias -= 1
    if "time_conflict" in issue_types:
        time_buffer += settings.time_buffer_step_minutes
    if "inefficient" in issue_types:
        stop_count_bias += 1
    return replace(
        tuning,
        overload_tolerance=overload_tolerance,
        stop_count_bias=stop_count_bias,
        time_buffer=time_buffer,
    )


def run_self_healing(
    orders: Sequence[Order],
    *,
    depot: Coordinates,
    vehicles: Sequence[VehicleDefinition],
    options: ScheduleOptions,
    strategy: StrategyId | str = StrategyId.GREEDY,
    max_retries: int | None = None,
    cancel_event: Optional[threading.Event] = None,
    on_cluster: Optional[ClusterProgress] = None,
) -> Done:
    solver = get_solver(strategy)
    max_retries = settings.max_retries if max_retries is None else max(0, max_retries)

    history: list[TuningState] = []
    suggestions: list[str] = []
    state: Attempt | Done = Attempt(number=0, tuning=options.tuning)

    while True:
        match state:
            case Done():
                return state
            case Attempt(number=number, tuning=tuning):
                raise_if_cancelled(cancel_event, f"attempt {number + 1}")
                attempt_options = replace(options, tuning=tuning)
                trips = solver.solve(
                    orders=orders,
                    depot=depot,
                    vehicles=vehicles,
                    options=attempt_options,
                    cancel_event=cancel_event,
                    on_cluster=on_cluster,
                )
                audit = audit_schedule(trips, depot, attempt_options, vehicles)
                history.append(tuning)
                suggestions.extend(audit.suggestions)
                logging.info(
                    f"Attempt {number + 1}: {len(trips)} trips, score {audit.score:.0f}, "
                    f"{len(audit.issues)} issues, valid={audit.is_valid}"
                )

                if audit.is_valid or number >= max_retries:
                    state = Done(
                        trips=trips,
                        audit=audit,
                        attempts=number + 1,
                        tuning_history=tuple(history),
                        suggestions=tuple(dict.fromkeys(suggestions)),
                    )
                else:
                    adjusted = next_tuning(tuning, audit.issue_types())
                    logging.info(f"Retrying with adjusted tuning {adjusted}")
                    state = Attempt(number=number + 1, tuning=adjusted)
