import math
from dataclasses import replace

from src.dispatch.models.domain import ClusteringConfig, ScheduleOptions, TuningState
from src.dispatch.services.scheduling.options import default_options, normalize_options


def test_missing_options_use_defaults():
    assert normalize_options(None) == default_options()


def test_valid_options_are_returned_unchanged():
    options = ScheduleOptions(max_stops=5, unloading_minutes=20.0, tuning=TuningState(time_buffer=15))

    assert normalize_options(options) is options


def test_non_finite_unloading_falls_back_to_default():
    for value in (math.nan, math.inf, -math.inf):
        normalized = normalize_options(ScheduleOptions(unloading_minutes=value))

        assert normalized.unloading_minutes == default_options().unloading_minutes


def test_non_finite_tuning_values_fall_back_to_defaults():
    tuning = TuningState(overload_tolerance=math.nan, cluster_bias=math.inf, time_buffer=math.nan)

    normalized = normalize_options(ScheduleOptions(tuning=tuning))

    assert normalized.tuning == default_options().tuning


def test_negative_tolerance_is_clamped_to_zero():
    normalized = normalize_options(ScheduleOptions(tuning=TuningState(overload_tolerance=-0.2, time_buffer=-5)))

    assert normalized.tuning.overload_tolerance == 0.0
    assert normalized.tuning.time_buffer == 0.0


def test_non_finite_clustering_overrides_are_dropped():
    clustering = ClusteringConfig(max_angle_span=math.inf, distance_thresholds=(10.0, math.nan))

    normalized = normalize_options(replace(ScheduleOptions(), clustering=clustering))

    assert normalized.clustering.max_angle_span is None
    assert normalized.clustering.distance_thresholds is None
    assert normalized.clustering.method == "sweep"
