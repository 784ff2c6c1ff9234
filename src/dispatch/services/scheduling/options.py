"""Default schedule options and normalization of caller-supplied values."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import get_args

from ...config import settings
from ...models.domain import ClusteringConfig, CostMode, ScheduleOptions, TuningState
from ..clock import is_valid_clock

COST_MODES = frozenset(get_args(CostMode))


def default_tuning() -> TuningState:
    return TuningState(overload_tolerance=settings.default_overload_tolerance)


def default_options() -> ScheduleOptions:
    return ScheduleOptions(
        max_stops=settings.default_max_stops,
        start_time=settings.default_start_time,
        deadline=settings.default_deadline,
        factory_deadline=settings.default_factory_deadline,
        unloading_minutes=float(settings.default_unloading_minutes),
        cost_mode=settings.default_cost_mode,
        show_market_reference=settings.show_market_reference,
        tuning=default_tuning(),
    )


def normalize_options(options: ScheduleOptions | None) -> ScheduleOptions:
    """Replace malformed option values with defaults instead of failing."""

    defaults = default_options()
    if options is None:
        return defaults

    fixes: dict[str, object] = {}
    if not isinstance(options.max_stops, int) or isinstance(options.max_stops, bool) or options.max_stops < 1:
        fixes["max_stops"] = defaults.max_stops
    for name in ("start_time", "deadline", "factory_deadline"):
        if not is_valid_clock(getattr(options, name)):
            fixes[name] = getattr(defaults, name)
    unloading = options.unloading_minutes
    if not _is_number(unloading) or unloading < 0:
        fixes["unloading_minutes"] = defaults.unloading_minutes
    if options.cost_mode not in COST_MODES:
        fixes["cost_mode"] = defaults.cost_mode
    tuning = _normalize_tuning(options.tuning, defaults.tuning)
    if tuning is not options.tuning:
        fixes["tuning"] = tuning
    clustering = _normalize_clustering(options.clustering)
    if clustering is not options.clustering:
        fixes["clustering"] = clustering

    if fixes:
        logging.warning(f"Schedule options normalized to defaults: {sorted(fixes)}")
        return replace(options, **fixes)
    return options


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _normalize_tuning(tuning: TuningState, defaults: TuningState) -> TuningState:
    fixes: dict[str, float] = {}
    if not _is_number(tuning.overload_tolerance):
        fixes["overload_tolerance"] = defaults.overload_tolerance
    elif tuning.overload_tolerance < 0:
        fixes["overload_tolerance"] = 0.0
    for name in ("cluster_bias", "time_buffer"):
        value = getattr(tuning, name)
        if not _is_number(value) or value < 0:
            fixes[name] = getattr(defaults, name)
    return replace(tuning, **fixes) if fixes else tuning


def _normalize_clustering(config: ClusteringConfig) -> ClusteringConfig:
    fixes: dict[str, object] = {}
    span = config.max_angle_span
    if span is not None and (not _is_number(span) or span <= 0):
        fixes["max_angle_span"] = None
    thresholds = config.distance_thresholds
    if thresholds is not None and not all(_is_number(value) and value > 0 for value in thresholds):
        fixes["distance_thresholds"] = None
    return replace(config, **fixes) if fixes else config
