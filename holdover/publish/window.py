"""Sliding-window push counter.

Tracks the timestamps of recent pushes in a deque.  Before any query,
timestamps older than (now - window_seconds) are dropped, so the count
always covers the rolling window ending now.

A push still in flight is held: it counts against the limit but has no
timestamp yet, so it cannot expire.  Settling it stamps the time the
receiver accepted it.  A sender that holds at dispatch and settles on
completion never frees a slot before the receiver does.

Used on both sides of the channel: the scheduler consults it to stay
inside the budget, and channel implementations use it to enforce one.
"""

from __future__ import annotations

import bisect
import collections
import time
from collections.abc import Callable

# Injectable time function (monotonic seconds)
TimeFn = Callable[[], float]


class RollingWindow:
    """Count events over a rolling window of ``window_seconds``."""

    __slots__ = ("limit", "window_seconds", "_now", "_events", "_held")

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        now_fn: TimeFn | None = None,
    ) -> None:
        self.limit = max(0, int(limit))
        self.window_seconds = max(0.0, float(window_seconds))
        self._now = now_fn or time.monotonic
        self._events: collections.deque[float] = collections.deque()
        self._held = 0

    def _prune(self) -> float:
        now = self._now()
        cutoff = now - self.window_seconds
        events = self._events
        while events and events[0] <= cutoff:
            events.popleft()
        return now

    def count(self) -> int:
        self._prune()
        return len(self._events) + self._held

    def remaining(self) -> int:
        return max(0, self.limit - self.count())

    def has_capacity(self) -> bool:
        return self.remaining() > 0

    @property
    def held(self) -> int:
        return self._held

    def retry_in(self) -> float:
        """Seconds until the oldest event leaves the window (0 if free).

        With only held events in the window the wait is unknown; a full
        window length is reported.
        """
        now = self._prune()
        if len(self._events) + self._held < self.limit:
            return 0.0
        if not self._events:
            return self.window_seconds
        return max(0.0, (self._events[0] + self.window_seconds) - now)

    def record(self, at: float | None = None) -> None:
        """Count a settled event at ``at`` (default now)."""
        now = self._prune()
        bisect.insort(self._events, now if at is None else at)

    def hold(self) -> None:
        """Count an event whose accepted time is not known yet."""
        self._held += 1

    def settle(self, at: float | None = None) -> None:
        """Turn one held event into a settled one accepted at ``at``."""
        if self._held == 0:
            raise RuntimeError("no held event to settle")
        self._held -= 1
        self.record(at)

    def clear(self) -> None:
        self._events.clear()
        self._held = 0
