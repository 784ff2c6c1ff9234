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
from src.dispatch.services.packing.service import PackingLimits, pack_cluster, pack_group, packing_sort_key
from src.dispatch.services.packing.splitting import is_oversized, plan_split, split_order
from src.dispatch.services.scheduling.errors import SchedulingCancelledError, SplitLimitExceededError

DEPOT = Coordinates(lng=120.9427, lat=31.3256)

SMALL_BOX = VehicleDefinition(
    id="small",
    name="small",
    category=VehicleCategory.BOX,
    max_weight_kg=3000,
    pallet_slots=10,
    base_price=400,
    price_per_km=2.0,
)

WING = replace(SMALL_BOX, id="wing", name="wing", category=VehicleCategory.FLYING_WING)


def _order(order_id: str, weight: float = 100.0, dlat: float = 0.02, dlng: float = 0.0, **flags) -> Order:
    window_end = flags.pop("window_end", None)
    volume = flags.pop("volume_m3", None)
    return Order(
        order_id=order_id,
        weight_kg=weight,
        volume_m3=volume,
        coordinates=Coordinates(lng=DEPOT.lng + dlng, lat=DEPOT.lat + dlat),
        constraints=RouteConstraints(
            time_window=TimeWindow(start="00:00", end=window_end) if window_end else None,
            **flags,
        ),
    )


def _ids(candidate) -> list[str]:
    return [order.order_id for order in candidate.orders]


def test_bins_respect_weight_capacity():
    orders = [_order(f"O{i}", weight=1000, dlat=0.01 + i * 0.001) for i in range(7)]

    bins = pack_group(orders, None, [SMALL_BOX], DEPOT, ScheduleOptions())

    assert [len(candidate.orders) for candidate in bins] == [3, 3, 1]
    assert all(candidate.total_weight_kg <= 3000 * 1.1 for candidate in bins)


def test_bins_respect_stop_count():
    orders = [_order(f"O{i}", dlat=0.01 + i * 0.001) for i in range(7)]

    bins = pack_group(orders, None, [SMALL_BOX], DEPOT, ScheduleOptions(max_stops=3))

    assert [candidate.stop_count for candidate in bins] == [3, 3, 1]


def test_stop_count_bias_changes_effective_limit():
    options = ScheduleOptions(max_stops=3, tuning=TuningState(stop_count_bias=-1))
    orders = [_order(f"O{i}", dlat=0.01 + i * 0.001) for i in range(4)]

    bins = pack_group(orders, None, [SMALL_BOX], DEPOT, options)

    assert [candidate.stop_count for candidate in bins] == [2, 2]


def test_single_trip_orders_travel_alone():
    orders = [_order("A"), _order("SOLO", single_trip_only=True), _order("B")]

    bins = pack_group(orders, None, [SMALL_BOX], DEPOT, ScheduleOptions())

    assert _ids(bins[0]) == ["SOLO"]
    assert sorted(_ids(bins[1])) == ["A", "B"]


def test_must_be_last_reserves_a_slot():
    orders = [_order(f"N{i}", dlat=0.01 + i * 0.001) for i in range(4)] + [_order("LAST", must_be_last=True)]

    bins = pack_group(orders, None, [SMALL_BOX], DEPOT, ScheduleOptions(max_stops=3))

    assert _ids(bins[0])[-1] == "LAST"
    assert len(bins[0].orders) == 3
    assert sum(len(candidate.orders) for candidate in bins) == 5


def test_must_be_first_order_leads_its_bin():
    orders = [_order("A"), _order("FIRST", dlat=0.05, must_be_first=True)]

    (candidate,) = pack_group(orders, None, [SMALL_BOX], DEPOT, ScheduleOptions())

    assert _ids(candidate)[0] == "FIRST"


def test_categories_are_packed_separately():
    orders = [_order("BOX_1"), _order("WING_1", required_vehicle_category=VehicleCategory.FLYING_WING), _order("BOX_2")]

    bins = pack_cluster(orders, [SMALL_BOX, WING], DEPOT, ScheduleOptions())

    by_category = {candidate.required_vehicle_category: sorted(_ids(candidate)) for candidate in bins}
    assert by_category == {None: ["BOX_1", "BOX_2"], VehicleCategory.FLYING_WING: ["WING_1"]}


def test_missing_category_gives_single_order_bins():
    orders = [
        _order("COLD_1", required_vehicle_category=VehicleCategory.REFRIGERATED),
        _order("COLD_2", required_vehicle_category=VehicleCategory.REFRIGERATED),
    ]

    bins = pack_cluster(orders, [SMALL_BOX], DEPOT, ScheduleOptions())

    assert [_ids(candidate) for candidate in bins] == [["COLD_1"], ["COLD_2"]]
    assert all(candidate.required_vehicle_category == VehicleCategory.REFRIGERATED for candidate in bins)


def test_infeasible_order_is_forced_alone():
    # about 55km away with a window that closed at departure
    late = _order("LATE", weight=500, dlat=0.5, window_end="06:00")
    easy = _order("EASY", weight=500, dlat=0.01)

    bins = pack_group([late, easy], None, [SMALL_BOX], DEPOT, ScheduleOptions())

    forced = [candidate for candidate in bins if candidate.forced]
    assert [_ids(candidate) for candidate in forced] == [["LATE"]]
    assert sum(len(candidate.orders) for candidate in bins) == 2


def test_tight_deadlines_sort_first():
    orders = [_order("LOOSE", weight=900), _order("TIGHT", weight=100, window_end="08:00"), _order("HEAVY", weight=2000)]

    assert [order.order_id for order in sorted(orders, key=packing_sort_key)] == ["TIGHT", "HEAVY", "LOOSE"]


def test_packing_limits_apply_overload_tolerance():
    limits = PackingLimits.for_vehicle(SMALL_BOX, ScheduleOptions(tuning=TuningState(overload_tolerance=0.1)))

    assert limits.max_weight_kg == pytest.approx(3300)
    assert limits.pallet_slots == 10


def test_pallet_slots_are_a_hard_limit_despite_tolerance():
    # 400kg unstackable orders take two slots each, so slots run out long before weight
    orders = [_order(f"N{i}", weight=400, dlat=0.01 + i * 0.001, no_stack=True) for i in range(7)]

    bins = pack_group(orders, None, [SMALL_BOX], DEPOT, ScheduleOptions(tuning=TuningState(overload_tolerance=0.1)))

    assert [len(candidate.orders) for candidate in bins] == [5, 2]
    assert all(candidate.total_pallet_slots <= SMALL_BOX.pallet_slots for candidate in bins)
    assert all(candidate.total_weight_kg < 3000 for candidate in bins)


def test_bins_respect_volume_capacity():
    roomy = replace(SMALL_BOX, max_volume_m3=10.0)
    orders = [_order(f"V{i}", dlat=0.01 + i * 0.001, volume_m3=4.0) for i in range(5)]

    bins = pack_group(orders, None, [roomy], DEPOT, ScheduleOptions(tuning=TuningState(overload_tolerance=0.1)))

    assert [len(candidate.orders) for candidate in bins] == [2, 2, 1]
    assert all(candidate.total_volume_m3 <= 10.0 * 1.1 for candidate in bins)


def test_plan_split_conserves_weight():
    order = _order("BIG", weight=9000)

    parts = plan_split(order, SMALL_BOX)

    assert [part.weight_kg for part in parts] == pytest.approx([2940, 2940, 3120])
    assert [part.pallet_slots for part in parts] == [3, 3, 3]
    assert sum(part.weight_kg for part in parts) == pytest.approx(9000)


def test_plan_split_stops_once_remainder_fits_tolerance():
    order = _order("BIG", weight=9000)

    strict = plan_split(order, SMALL_BOX, 0.0)

    assert [part.weight_kg for part in strict] == pytest.approx([2940, 2940, 2940, 180])
    assert [part.pallet_slots for part in strict] == [3, 3, 3, 0]
    assert len(plan_split(order, SMALL_BOX, 0.1)) == 3


def test_split_order_names_children_after_parent():
    children = split_order(_order("BIG", weight=9000), SMALL_BOX)

    assert [child.order_id for child in children] == ["BIG-1", "BIG-2", "BIG-3"]
    assert all(child.parent_order_id == "BIG" for child in children)
    assert "split into 3 parts" in children[0].cleaning_warnings[-1]


def test_oversize_detection_honors_tolerance():
    assert not is_oversized(_order("A", weight=3200), SMALL_BOX, 0.1)
    assert is_oversized(_order("B", weight=3400), SMALL_BOX, 0.1)
    assert is_oversized(_order("C", weight=3200), SMALL_BOX, 0.0)


def test_oversize_detection_checks_volume_and_pallets():
    roomy = replace(SMALL_BOX, max_volume_m3=10.0)

    assert not is_oversized(_order("A", volume_m3=10.5), roomy, 0.1)
    assert is_oversized(_order("B", volume_m3=12.0), roomy, 0.1)
    # 12 pallet slots never fit, however generous the weight tolerance
    assert is_oversized(_order("C", weight=5100, no_stack=True), SMALL_BOX, 1.0)


def test_order_rejects_non_finite_weight():
    with pytest.raises(ValueError):
        _order("INF", weight=float("inf"))


def test_split_limit_is_enforced():
    with pytest.raises(SplitLimitExceededError) as excinfo:
        plan_split(_order("HUGE", weight=1_000_000), SMALL_BOX)

    assert excinfo.value.order_id == "HUGE"


def test_oversized_order_is_packed_into_several_bins():
    bins = pack_group([_order("BIG", weight=9000)], None, [SMALL_BOX], DEPOT, ScheduleOptions())

    assert sorted(candidate.total_weight_kg for candidate in bins) == pytest.approx([2940, 2940, 3120])


def test_packing_stops_when_cancelled():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(SchedulingCancelledError):
        pack_group([_order("A")], None, [SMALL_BOX], DEPOT, ScheduleOptions(), cancel)
