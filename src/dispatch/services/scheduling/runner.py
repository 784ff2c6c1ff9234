"""Multi-scheme scheduling entry point."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from ...config import settings
from ...models.domain import Coordinates, Order, ScheduleOptions, ScheduleResult, Scheme, VehicleDefinition
from ..vehicles.fleet import enabled_vehicles
from .errors import NoEnabledVehiclesError, NoSchedulableOrdersError, raise_if_cancelled
from .options import normalize_options
from .orchestrator import Done, run_self_healing
from .planner import ClusterProgress
from .progress import (
    STAGE_PARSE,
    STAGE_PREPARE,
    STAGE_REPORT,
    STAGE_SCHEMES,
    STAGE_SOLVE,
    ProgressCallback,
    ProgressReporter,
)
from .strategies import StrategyId
from .summary import generate_summary

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SchemeProfile:
    id: str
    name: str
    tag: str
    description: str
    adjust: Callable[[ScheduleOptions], ScheduleOptions]


SCHEME_PROFILES: tuple[SchemeProfile, ...] = (
    SchemeProfile(
        id="cost_first",
        name="Cost first",
        tag="economy",
        description="Mileage pricing; favors merging orders onto fewer, larger vehicles.",
        adjust=lambda options: replace(options, cost_mode="mileage"),
    ),
    SchemeProfile(
        id="strict_constraint",
        name="Strict constraints",
        tag="robust",
        description="Options as given; oversized orders are split automatically instead of relaxing limits.",
        adjust=lambda options: options,
    ),
    SchemeProfile(
        id="time_safe",
        name="Service assurance",
        tag="recommended",
        description="Adds 15 minutes of unloading slack per stop to lower the risk of late arrivals.",
        adjust=lambda options: replace(options, unloading_minutes=options.unloading_minutes + 15),
    ),
)


def default_depot() -> Coordinates:
    return Coordinates(lng=settings.depot_longitude, lat=settings.depot_latitude)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _build_scheme(
    profile: SchemeProfile,
    outcome: Done,
    all_orders: Sequence[Order],
    invalid_orders: Sequence[Order],
) -> Scheme:
    return Scheme(
        id=profile.id,
        name=profile.name,
        tag=profile.tag,
        description=profile.description,
        trips=outcome.trips,
        summary=generate_summary(outcome.trips, all_orders, invalid_orders, outcome.suggestions),
        score=outcome.audit.score,
        attempts=outcome.attempts,
    )


def run_schemes(
    orders: Sequence[Order],
    vehicles: Sequence[VehicleDefinition],
    *,
    depot: Coordinates | None = None,
    options: ScheduleOptions | None = None,
    strategy: StrategyId | str = StrategyId.GREEDY,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    task_id: str | None = None,
) -> ScheduleResult:
    """Schedule the orders under every scheme profile and return all schemes.

    The first scheme is exposed as the default plan. Raises
    ``NoEnabledVehiclesError`` or ``NoSchedulableOrdersError`` for input that
    cannot be planned at all.
    """
    task_id = task_id or str(uuid.uuid4())
    created_at = _now()
    depot = depot or default_depot()
    options = normalize_options(options)
    strategy = StrategyId(strategy)

    with ProgressReporter(task_id, on_progress) as progress:
        progress.report(STAGE_PARSE, 10, f"Validating {len(orders)} orders and {len(vehicles)} vehicles")
        if not enabled_vehicles(vehicles):
            raise NoEnabledVehiclesError("No enabled vehicles: enable at least one vehicle type.")

        valid = [order for order in orders if order.coordinates is not None]
        invalid = [order for order in orders if order.coordinates is None]
        if not valid:
            raise NoSchedulableOrdersError(
                f"None of the {len(orders)} orders has coordinates; nothing can be scheduled."
            )
        if invalid:
            logger.warning(f"{len(invalid)} orders without coordinates are left unscheduled")
        progress.report(STAGE_PREPARE, 30, f"{len(valid)} orders ready, {len(invalid)} without coordinates")

        progress.report(STAGE_SOLVE, 40, f"Running '{strategy.value}' for {len(SCHEME_PROFILES)} schemes")
        outcomes: dict[str, Done] = {}

        def cluster_progress(profile: SchemeProfile) -> ClusterProgress:
            def report(done: int, total: int) -> None:
                percent = 40 + 50 * len(outcomes) / len(SCHEME_PROFILES)
                progress.report(STAGE_SCHEMES, percent, f"{profile.name}: {done}/{total} clusters packed")

            return report

        with ThreadPoolExecutor(
            max_workers=min(settings.scheme_workers, len(SCHEME_PROFILES)),
            thread_name_prefix="dispatch-scheme",
        ) as executor:
            future_to_profile = {
                executor.submit(
                    run_self_healing,
                    valid,
                    depot=depot,
                    vehicles=vehicles,
                    options=profile.adjust(options),
                    strategy=strategy,
                    cancel_event=cancel_event,
                    on_cluster=cluster_progress(profile),
                ): profile
                for profile in SCHEME_PROFILES
            }
            for future in as_completed(future_to_profile):
                profile = future_to_profile[future]
                outcomes[profile.id] = future.result()
                percent = 40 + 50 * len(outcomes) / len(SCHEME_PROFILES)
                progress.report(STAGE_SCHEMES, percent, f"Scheme '{profile.name}' ready")

        raise_if_cancelled(cancel_event, "report generation")
        schemes = [_build_scheme(profile, outcomes[profile.id], orders, invalid) for profile in SCHEME_PROFILES]
        default = schemes[0]
        logger.info(
            f"Task {task_id}: {len(valid)} orders scheduled into "
            + ", ".join(f"{scheme.id}={len(scheme.trips)} trips" for scheme in schemes)
        )
        progress.report(STAGE_REPORT, 100, "All schemes completed")

    return ScheduleResult(
        task_id=task_id,
        status="completed",
        schemes=schemes,
        trips=default.trips,
        summary=default.summary,
        created_at=created_at,
        completed_at=_now(),
    )
