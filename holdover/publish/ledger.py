"""PublicationLedger — the only mutable state shared with push callbacks.

Single-writer discipline:
    - The PublicationScheduler is the only writer of every field.
    - Push-result callbacks only append to the outcome queue, which the
      scheduler drains and applies on its next decision.
"""

from __future__ import annotations

import collections
from dataclasses import dataclass

from holdover.domain.enums import PushReason, Zone
from holdover.domain.snapshot import HoldoverSnapshot
from holdover.publish.window import RollingWindow, TimeFn


@dataclass(frozen=True)
class PushOutcome:
    """Result of one dispatched push, reported asynchronously."""

    version: int
    reason: PushReason
    ok: bool
    error: str | None = None
    error_type: str | None = None
    remote_ended: bool = False
    accepted_at: float | None = None


class PublicationLedger:
    """Records what was pushed, when, and how much budget is left."""

    __slots__ = (
        "window",
        "_owns_window",
        "_now",
        "last_snapshot",
        "last_pushed_at",
        "total_pushes",
        "degraded_reason",
        "remote_ended",
        "_outcomes",
    )

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        now_fn: TimeFn,
        window: RollingWindow | None = None,
    ) -> None:
        # A shared window outlives the session; it is never cleared here.
        self._owns_window = window is None
        self.window = window or RollingWindow(limit=limit, window_seconds=window_seconds, now_fn=now_fn)
        self._now = now_fn
        self.last_snapshot: HoldoverSnapshot | None = None
        self.last_pushed_at: float | None = None
        self.total_pushes: int = 0
        self.degraded_reason: str | None = None
        self.remote_ended: bool = False
        self._outcomes: collections.deque[PushOutcome] = collections.deque()

    # ── Writer side (scheduler only) ─────────────────────────────────────

    def record_push(self, snapshot: HoldoverSnapshot, *, accepted_at: float | None = None) -> None:
        """Count a push.  Without ``accepted_at`` it stays held until settled."""
        if accepted_at is None:
            self.window.hold()
        else:
            self.window.record(accepted_at)
        self.last_snapshot = snapshot
        self.last_pushed_at = self._now()
        self.total_pushes += 1

    def settle_push(self, accepted_at: float | None) -> None:
        self.window.settle(accepted_at)

    def mark_degraded(self, reason: str, *, remote_ended: bool = False) -> None:
        if self.degraded_reason is None:
            self.degraded_reason = reason
        self.remote_ended = self.remote_ended or remote_ended

    def drain_outcomes(self) -> list[PushOutcome]:
        drained = list(self._outcomes)
        self._outcomes.clear()
        return drained

    def reset(self) -> None:
        if self._owns_window:
            self.window.clear()
        self.last_snapshot = None
        self.last_pushed_at = None
        self.total_pushes = 0
        self.degraded_reason = None
        self.remote_ended = False
        self._outcomes.clear()

    # ── Callback side ────────────────────────────────────────────────────

    def queue_outcome(self, outcome: PushOutcome) -> None:
        self._outcomes.append(outcome)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def last_zone(self) -> Zone | None:
        return self.last_snapshot.zone if self.last_snapshot else None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None

    def seconds_since_push(self) -> float | None:
        if self.last_pushed_at is None:
            return None
        return self._now() - self.last_pushed_at

    def summary(self) -> dict:
        return {
            "total_pushes": self.total_pushes,
            "pushes_in_window": self.window.count(),
            "window_remaining": self.window.remaining(),
            "last_version": self.last_snapshot.version if self.last_snapshot else None,
            "last_zone": self.last_zone.value if self.last_zone else None,
            "degraded": self.degraded,
            "degraded_reason": self.degraded_reason,
        }
