"""Exceptions raised by the scheduling engine."""

from __future__ import annotations

import threading
from typing import Optional


class SchedulingError(ValueError):
    """Base class for input problems the engine cannot plan around."""


class NoEnabledVehiclesError(SchedulingError):
    pass


class NoSchedulableOrdersError(SchedulingError):
    pass


class SplitLimitExceededError(SchedulingError):
    """An order needs more split parts than allowed; fleet or order data is wrong."""

    def __init__(self, order_id: str, limit: int) -> None:
        super().__init__(
            f"Order '{order_id}' would need more than {limit} split parts. "
            f"Check the order weight/volume and the fleet capacities."
        )
        self.order_id = order_id
        self.limit = limit


class SchedulingCancelledError(SchedulingError):
    pass


def raise_if_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SchedulingCancelledError(f"Scheduling cancelled during {stage}.")
