"""
FlickCatch Simulation: Callback Queue

Deferred side effects keyed to simulation time. The state machine schedules
"detach the creature after its shrink" and "start the roll after the drop"
here, and the tick function drains due callbacks, so tests drive time
deterministically without real delays.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List

logger = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledCallback:
    due: float
    seq: int
    token: int = field(compare=False)
    name: str = field(compare=False)
    fn: Callable[[], None] = field(compare=False, repr=False)
    cancelled: bool = field(default=False, compare=False)


class CallbackQueue:
    """Min-heap of callbacks ordered by (due time, insertion order)."""

    def __init__(self):
        self._heap: List[ScheduledCallback] = []
        self._seq = itertools.count()

    def schedule(self, due: float, token: int, name: str, fn: Callable[[], None]) -> ScheduledCallback:
        """Queue `fn` to run on the first drain at or after `due`.

        Args:
            due: Simulation time in seconds.
            token: Session that owns the callback; used by cancel().
            name: Label for logs.
            fn: Zero-argument callable.
        """
        entry = ScheduledCallback(due=float(due), seq=next(self._seq), token=token, name=name, fn=fn)
        heapq.heappush(self._heap, entry)
        logger.debug("Scheduled %s at t=%.3f (session %d)", name, entry.due, token)
        return entry

    def cancel(self, token: int) -> int:
        """Cancel every pending callback of a session. Returns how many."""
        cancelled = 0
        for entry in self._heap:
            if entry.token == token and not entry.cancelled:
                entry.cancelled = True
                cancelled += 1
        if cancelled:
            self._heap = [e for e in self._heap if not e.cancelled]
            heapq.heapify(self._heap)
            logger.debug("Cancelled %d callback(s) of session %d", cancelled, token)
        return cancelled

    def run_due(self, now: float) -> int:
        """Run every callback due at or before `now`, earliest first.

        A callback may schedule further callbacks; those run in the same
        drain if they are already due.

        Returns:
            Number of callbacks run.
        """
        ran = 0
        while self._heap and self._heap[0].due <= now:
            entry = heapq.heappop(self._heap)
            if entry.cancelled:
                continue
            entry.fn()
            ran += 1
        return ran

    def pending(self, token: int = None) -> List[ScheduledCallback]:
        """Pending callbacks in due order, optionally for one session."""
        return sorted(
            e for e in self._heap
            if not e.cancelled and (token is None or e.token == token)
        )

    def __len__(self) -> int:
        return sum(1 for e in self._heap if not e.cancelled)
