"""TimerCore — owns elapsed time and run/pause state for one session.

Lifecycle:  idle → running ⇄ paused → ended  (→ idle on reset)

Elapsed time is always derived, never accumulated tick by tick:
    running:  now - start_reference - paused_accumulated
    paused:   frozen at the value captured by pause()

The wall clock is used rather than a monotonic one because hold-over time
is physical time: it keeps running while the producing process is
suspended.  Wall-clock misbehaviour is handled as a clock anomaly:
    - backward steps are clamped (elapsed never decreases)
    - implausibly large forward gaps are reported, not shortened

TimerCore never talks to the remote channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from holdover.domain.enums import ClockAnomalyKind, TimerPhase
from holdover.domain.snapshot import SessionState
from holdover.domain.thresholds import ThresholdSet
from holdover.foundation.clock import Clock, utc_now

logger = logging.getLogger(__name__)

_ZERO = timedelta(0)


# ── Errors ───────────────────────────────────────────────────────────────────

class StateError(Exception):
    """An operation was called out of order.  No state was changed."""


class AlreadyRunning(StateError):
    """start() called while a session is running or paused."""


class NotRunning(StateError):
    """pause() called while the timer is not running."""


class NotPaused(StateError):
    """resume() called while the timer is not paused."""


class SessionActive(StateError):
    """reset() called while a session is still live."""


class NoSession(StateError):
    """stop() called with no live session."""


# ── Readings ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClockAnomaly:
    """A detected wall-clock misbehaviour between two readings."""

    kind: ClockAnomalyKind
    delta_seconds: float


@dataclass(frozen=True)
class TickReading:
    elapsed_seconds: float
    anomaly: ClockAnomaly | None = None


# ── TimerCore ────────────────────────────────────────────────────────────────

class TimerCore:
    """Hold-over countdown state machine.

    Args:
        clock: Source of UTC-aware "now".  Injected so tests control time.
        suspension_threshold_seconds: Elapsed growth between two readings
            above which the gap is reported as a suspension anomaly.
    """

    __slots__ = (
        "_clock",
        "_suspension_threshold",
        "_phase",
        "_thresholds",
        "_started_at",
        "_start_reference",
        "_paused_accumulated",
        "_paused_at",
        "_elapsed",
    )

    def __init__(
        self,
        clock: Clock = utc_now,
        suspension_threshold_seconds: float = 10.0,
    ) -> None:
        self._clock = clock
        self._suspension_threshold = timedelta(seconds=suspension_threshold_seconds)
        self._clear()

    # ── Mutation ─────────────────────────────────────────────────────────

    def start(self, thresholds: ThresholdSet) -> None:
        """Begin a new session.  Allowed from idle or after a session ended."""
        if self._phase in (TimerPhase.RUNNING, TimerPhase.PAUSED):
            raise AlreadyRunning(f"cannot start: session is {self._phase.value}")

        now = self._clock()
        self._clear()
        self._thresholds = thresholds
        self._started_at = now
        self._start_reference = now
        self._phase = TimerPhase.RUNNING
        logger.info(
            "Timer started at %s (assured=%.0fs, limit=%.0fs)",
            now.isoformat(),
            thresholds.assured_seconds,
            thresholds.limit_seconds,
        )

    def pause(self) -> float:
        """Freeze elapsed at its current value.  Returns the frozen seconds."""
        if self._phase is not TimerPhase.RUNNING:
            raise NotRunning(f"cannot pause: timer is {self._phase.value}")

        now = self._clock()
        self._measure(now)
        self._paused_at = now
        self._phase = TimerPhase.PAUSED
        logger.info("Timer paused at elapsed=%.1fs", self._elapsed.total_seconds())
        return self._elapsed.total_seconds()

    def resume(self) -> float:
        """Continue from exactly the frozen elapsed value."""
        if self._phase is not TimerPhase.PAUSED:
            raise NotPaused(f"cannot resume: timer is {self._phase.value}")

        now = self._clock()
        assert self._paused_at is not None and self._start_reference is not None
        self._paused_accumulated += max(now - self._paused_at, _ZERO)
        # A clock step during the pause would otherwise leak into elapsed.
        self._start_reference = now - self._paused_accumulated - self._elapsed
        self._paused_at = None
        self._phase = TimerPhase.RUNNING
        logger.info(
            "Timer resumed at elapsed=%.1fs (paused total %.1fs)",
            self._elapsed.total_seconds(),
            self._paused_accumulated.total_seconds(),
        )
        return self._elapsed.total_seconds()

    def stop(self) -> float:
        """End the live session and freeze the final elapsed value."""
        if self._phase is TimerPhase.RUNNING:
            self._measure(self._clock())
        elif self._phase is not TimerPhase.PAUSED:
            raise NoSession(f"cannot stop: timer is {self._phase.value}")

        self._paused_at = None
        self._phase = TimerPhase.ENDED
        logger.info("Timer stopped at elapsed=%.1fs", self._elapsed.total_seconds())
        return self._elapsed.total_seconds()

    def reset(self) -> None:
        """Clear all session state.  Not allowed while a session is live."""
        if self._phase in (TimerPhase.RUNNING, TimerPhase.PAUSED):
            raise SessionActive(f"cannot reset: session is {self._phase.value}")
        self._clear()
        logger.debug("Timer reset")

    # ── Reading ──────────────────────────────────────────────────────────

    def tick(self, now: datetime | None = None) -> TickReading:
        """Recompute elapsed.  Never changes the run phase."""
        if self._phase is not TimerPhase.RUNNING:
            return TickReading(self._elapsed.total_seconds())

        anomaly = self._measure(now if now is not None else self._clock())
        return TickReading(self._elapsed.total_seconds(), anomaly)

    @property
    def phase(self) -> TimerPhase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._phase is TimerPhase.RUNNING

    @property
    def is_live(self) -> bool:
        return self._phase in (TimerPhase.RUNNING, TimerPhase.PAUSED)

    @property
    def thresholds(self) -> ThresholdSet | None:
        return self._thresholds

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed as of the last reading (tick, pause or stop)."""
        return self._elapsed.total_seconds()

    @property
    def state(self) -> SessionState:
        return SessionState(
            phase=self._phase,
            elapsed_seconds=self._elapsed.total_seconds(),
            is_running=self.is_running,
            started_at=self._started_at,
            start_reference=self._start_reference,
            paused_accumulated=self._paused_accumulated,
        )

    # ── Internals ────────────────────────────────────────────────────────

    def _measure(self, now: datetime) -> ClockAnomaly | None:
        """Update elapsed from the running rule, clamping clock anomalies."""
        assert self._start_reference is not None
        raw = now - self._start_reference - self._paused_accumulated
        delta = raw - self._elapsed

        if delta < _ZERO:
            # Re-base so elapsed continues from the last good value.
            self._start_reference = now - self._paused_accumulated - self._elapsed
            logger.warning(
                "Clock moved backward by %.1fs; elapsed held at %.1fs",
                -delta.total_seconds(),
                self._elapsed.total_seconds(),
            )
            return ClockAnomaly(ClockAnomalyKind.BACKWARD, delta.total_seconds())

        self._elapsed = raw
        if delta > self._suspension_threshold:
            logger.warning(
                "Elapsed jumped %.1fs between readings (suspended?); now %.1fs",
                delta.total_seconds(),
                raw.total_seconds(),
            )
            return ClockAnomaly(ClockAnomalyKind.SUSPENSION, delta.total_seconds())
        return None

    def _clear(self) -> None:
        self._phase = TimerPhase.IDLE
        self._thresholds: ThresholdSet | None = None
        self._started_at: datetime | None = None
        self._start_reference: datetime | None = None
        self._paused_accumulated = _ZERO
        self._paused_at: datetime | None = None
        self._elapsed = _ZERO

    def __repr__(self) -> str:
        return f"TimerCore(phase={self._phase.value}, elapsed={self._elapsed.total_seconds():.1f}s)"
