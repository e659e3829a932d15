"""Single-threaded timer queue pumped from the UI loop."""

from __future__ import annotations

import heapq
import itertools
import time
from typing import Callable, List, Tuple


class ScheduledTask:
    """Handle for a pending callback; ``cancel`` keeps it from ever running."""

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.done = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.done)

    def cancel(self) -> None:
        self.cancelled = True


class TimerQueue:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._heap: List[Tuple[float, int, ScheduledTask]] = []
        self._counter = itertools.count()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(self.clock() + max(0.0, delay_s), callback)
        heapq.heappush(self._heap, (task.due, next(self._counter), task))
        return task

    @property
    def pending(self) -> int:
        return sum(1 for _, _, task in self._heap if task.pending)

    def run_due(self) -> int:
        """Run every task already due when called, in due order.

        Tasks scheduled by those callbacks wait for the next call, even with a
        zero delay.
        """
        now = self.clock()
        due: List[ScheduledTask] = []
        while self._heap and self._heap[0][0] <= now:
            due.append(heapq.heappop(self._heap)[2])

        ran = 0
        for task in due:
            if task.cancelled:
                continue
            task.done = True
            task.callback()
            ran += 1
        return ran

    def clear(self) -> None:
        for _, _, task in self._heap:
            task.cancel()
        self._heap.clear()
