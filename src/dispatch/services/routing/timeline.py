"""Arrival-time simulation over a sequenced trip."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import Coordinates, Order, ScheduleOptions, Stop
from ..clock import format_clock, parse_clock
from ..geospatial import estimate_duration_hours, estimate_road_km
from .sequencer import route_distance_km, segment_distances_km, sequence_orders


@dataclass(slots=True)
class StopTiming:
    order: Order
    straight_km: float
    road_km: float
    travel_minutes: float
    arrival_minutes: float
    departure_minutes: float
    window_end_minutes: float
    deadline_minutes: float

    @property
    def delay_minutes(self) -> float:
        return max(0.0, self.arrival_minutes - self.window_end_minutes)

    @property
    def is_on_time(self) -> bool:
        return self.arrival_minutes <= self.window_end_minutes and self.arrival_minutes <= self.deadline_minutes


@dataclass(slots=True)
class Timeline:
    start_minutes: float
    stops: list[StopTiming]
    return_road_km: float
    return_minutes: float

    @property
    def end_minutes(self) -> float:
        last = self.stops[-1].departure_minutes if self.stops else self.start_minutes
        return last + self.return_minutes

    @property
    def total_road_km(self) -> float:
        return sum(stop.road_km for stop in self.stops) + self.return_road_km


def window_end_minutes(order: Order, options: ScheduleOptions) -> float:
    """End of the order's window, or the schedule deadline when it has none."""

    deadline = parse_clock(options.deadline, settings.default_deadline)
    if order.window_end is None:
        return deadline
    return parse_clock(order.window_end, options.deadline)


def simulate(sequence: Sequence[Order], depot: Coordinates, options: ScheduleOptions) -> Timeline:
    """Walk the stops in the given order from the configured start time."""

    start = parse_clock(options.start_time, settings.default_start_time)
    deadline = parse_clock(options.deadline, settings.default_deadline)
    current = start
    stops: list[StopTiming] = []
    for order, straight_km in zip(sequence, segment_distances_km(sequence, depot)):
        road_km = estimate_road_km(straight_km)
        minutes = estimate_duration_hours(road_km) * 60.0
        arrival = current + minutes
        departure = arrival + options.unloading_minutes
        stops.append(
            StopTiming(
                order=order,
                straight_km=straight_km,
                road_km=road_km,
                travel_minutes=minutes,
                arrival_minutes=arrival,
                departure_minutes=departure,
                window_end_minutes=window_end_minutes(order, options),
                deadline_minutes=deadline,
            )
        )
        current = departure

    return_straight = route_distance_km(sequence, depot) - sum(stop.straight_km for stop in stops)
    return_road = estimate_road_km(max(0.0, return_straight))
    return Timeline(
        start_minutes=start,
        stops=stops,
        return_road_km=return_road,
        return_minutes=estimate_duration_hours(return_road) * 60.0,
    )


def is_time_feasible(orders: Sequence[Order], depot: Coordinates, options: ScheduleOptions) -> bool:
    """Whether a prospective bin can be served within the elastic lateness allowance.

    The tuning time buffer widens that allowance, so each retry after a time
    conflict tolerates more lateness.
    """
    if not orders:
        return True
    timeline = simulate(sequence_orders(orders, depot), depot, options)
    allowance = settings.elastic_buffer_minutes + options.tuning.time_buffer
    return all(stop.arrival_minutes <= stop.window_end_minutes + allowance for stop in timeline.stops)


def build_stops(timeline: Timeline) -> list[Stop]:
    stops: list[Stop] = []
    cumulative_km = 0.0
    for index, timing in enumerate(timeline.stops):
        cumulative_km += timing.road_km
        duration_from_prev = timing.travel_minutes / 60.0
        delay: Optional[float] = round(timing.delay_minutes, 1) if timing.delay_minutes > 0 else None
        stops.append(
            Stop(
                sequence=index + 1,
                order=timing.order,
                eta=format_clock(timing.arrival_minutes),
                etd=format_clock(timing.departure_minutes),
                distance_from_prev_km=round(timing.road_km, 2),
                duration_from_prev_h=round(duration_from_prev, 2),
                cumulative_distance_km=round(cumulative_km, 2),
                cumulative_duration_h=round((timing.arrival_minutes - timeline.start_minutes) / 60.0, 2),
                is_on_time=timing.is_on_time,
                delay_minutes=delay,
            )
        )
    return stops
