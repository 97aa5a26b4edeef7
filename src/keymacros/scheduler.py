"""Tick-keyed deferred work for the host event loop."""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

Callback = Callable[[], None]


@dataclass
class ScheduledTask:
    """Handle for a continuation queued on a :class:`TickScheduler`."""

    due: int
    callback: Callback
    interval: Optional[int] = None
    label: str = ""
    cancelled: bool = field(default=False, compare=False)

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        self.cancelled = True


class TickScheduler:
    """Run callbacks after a number of ticks without blocking the loop.

    The owner calls :meth:`tick` once per frame/update. Tasks due on the same
    tick run in the order they were scheduled. Repeating tasks are re-queued
    ``interval`` ticks after each run until cancelled.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._now = 0
        self._counter = itertools.count()
        self._queue: List[Tuple[int, int, ScheduledTask]] = []

    @property
    def now(self) -> int:
        return self._now

    def schedule(
        self,
        delay_ticks: int,
        callback: Callback,
        *,
        interval: Optional[int] = None,
        label: str = "",
    ) -> ScheduledTask:
        if delay_ticks < 0:
            raise ValueError("delay_ticks must not be negative")
        if interval is not None and interval < 1:
            raise ValueError("interval must be at least one tick")
        task = ScheduledTask(self._now + delay_ticks, callback, interval, label)
        self._push(task)
        return task

    def pending(self) -> int:
        return sum(1 for _, _, task in self._queue if not task.cancelled)

    def clear(self) -> None:
        for _, _, task in self._queue:
            task.cancel()
        self._queue.clear()

    def tick(self) -> int:
        """Advance one tick and run every task that became due.

        Returns the number of callbacks executed.
        """

        self._now += 1
        executed = 0
        while self._queue and self._queue[0][0] <= self._now:
            _, _, task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            self._run(task)
            executed += 1
            if task.repeating and not task.cancelled:
                task.due = self._now + task.interval  # type: ignore[operator]
                self._push(task)
        return executed

    def _push(self, task: ScheduledTask) -> None:
        heapq.heappush(self._queue, (task.due, next(self._counter), task))

    def _run(self, task: ScheduledTask) -> None:
        try:
            task.callback()
        except Exception:  # pragma: no cover - defensive logging
            self._logger.exception("Scheduled task %s raised an exception", task.label or task)
