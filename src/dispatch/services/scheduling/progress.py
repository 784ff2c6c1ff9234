"""Fire-and-forget progress reporting."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from ...models.domain import ProgressEvent

ProgressCallback = Callable[[ProgressEvent], None]

STAGE_PARSE = (1, "Validating input")
STAGE_PREPARE = (2, "Preparing orders")
STAGE_SOLVE = (3, "Running scheduling strategy")
STAGE_SCHEMES = (4, "Building schemes")
STAGE_REPORT = (5, "Generating report")

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Delivers progress events on a single background thread.

    ``report`` never blocks on the receiver and never raises because of it;
    receiver failures are logged.
    """

    def __init__(self, task_id: str, callback: Optional[ProgressCallback] = None) -> None:
        self.task_id = task_id
        self._callback = callback
        self._executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="dispatch-progress") if callback else None
        )

    def report(self, stage: tuple[int, str], percent: float, message: str) -> None:
        if self._executor is None:
            return
        number, name = stage
        event = ProgressEvent(
            task_id=self.task_id,
            stage=number,
            stage_name=name,
            percent=max(0.0, min(100.0, round(percent, 1))),
            message=message,
        )
        try:
            future = self._executor.submit(self._callback, event)
        except RuntimeError:
            logger.debug(f"Progress reporter closed, dropping event: {message}")
            return
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning(f"Progress receiver failed: {exc}")

    def close(self, wait: bool = False) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ProgressReporter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
