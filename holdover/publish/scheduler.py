"""PublicationScheduler — decides when a snapshot crosses the remote channel.

Lifecycle:  idle → active → ended   (ended is terminal)

Decision, on every tick or explicit event:
    1. Forced push on start, zone transition, pause, resume, clock anomaly
       and end.  Forced pushes ignore the heartbeat cadence but still count
       against the budget; without capacity they stay pending and are
       retried on later ticks with the latest snapshot.
    2. Otherwise a heartbeat when the cadence has elapsed:
           cadence = max(minimum_interval, limit_seconds / heartbeat_slots)
       where heartbeat_slots is the window's remaining budget minus a
       reserve kept for forced pushes.  Recomputed every tick, so a long
       session spaces its remaining pushes out automatically.
    3. Otherwise skip.  The last pushed snapshot stays on the surface.

Pushes are fire-and-forget tasks chained in dispatch order.  A push counts
against the budget from dispatch and is never retried.  Its slot is held
until the push completes and is then stamped with the completion time, so
the scheduler's window never frees a slot before the channel's does.
The first failure reported by the channel stops publication for the rest
of the session; local timing is unaffected.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time

from holdover.domain.enums import PushReason, SchedulerPhase
from holdover.domain.snapshot import HoldoverSnapshot, SessionAttributes
from holdover.publish.channel import (
    ChannelError,
    DismissalPolicy,
    DisplayChannel,
    PushBudget,
    SessionEnded,
)
from holdover.publish.ledger import PublicationLedger, PushOutcome
from holdover.publish.window import RollingWindow, TimeFn

logger = logging.getLogger(__name__)


class PublicationScheduler:
    """Rate-budgeted publisher for one session.

    Args:
        channel: The remote display channel; supplies the push budget.
        minimum_interval_seconds: Shortest allowed heartbeat cadence.
        forced_reserve: Budget slots per window kept free for forced pushes.
        now_fn: Monotonic time source for the budget window.
        window: Budget window shared across sessions on the same channel.
            Without one, each scheduler starts from an empty window.
    """

    def __init__(
        self,
        channel: DisplayChannel,
        *,
        minimum_interval_seconds: float = 15.0,
        forced_reserve: int = 6,
        now_fn: TimeFn | None = None,
        window: RollingWindow | None = None,
    ) -> None:
        self._channel = channel
        self._budget: PushBudget = channel.budget
        self._minimum_interval = minimum_interval_seconds
        self._forced_reserve = max(0, forced_reserve)
        self._now = now_fn or time.monotonic
        self._ledger = PublicationLedger(
            limit=self._budget.pushes,
            window_seconds=self._budget.window_seconds,
            now_fn=self._now,
            window=window,
        )
        self._phase = SchedulerPhase.IDLE
        self._handle: str | None = None
        self._limit_seconds: float = 0.0
        self._pending: PushReason | None = None
        self._in_flight: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def start(self, snapshot: HoldoverSnapshot, attributes: SessionAttributes) -> bool:
        """Open the remote session and force the initial push.

        Returns False if the channel refused the session; the scheduler
        then stays active but degraded, and publishes nothing.
        """
        if self._phase is not SchedulerPhase.IDLE:
            raise RuntimeError(f"scheduler already {self._phase.value}")

        self._phase = SchedulerPhase.ACTIVE
        self._limit_seconds = attributes.limit_time_seconds
        try:
            self._handle = await self._channel.open_session(attributes)
        except ChannelError as exc:
            self._ledger.mark_degraded(f"{type(exc).__name__}: {exc}")
            logger.warning(
                "Remote session for %s could not be opened (%s); publishing disabled",
                attributes.session_id,
                exc,
            )
            return False

        logger.info("Remote session opened for %s", attributes.session_id)
        self.force(snapshot, PushReason.START)
        return True

    async def end(
        self,
        final_snapshot: HoldoverSnapshot,
        policy: DismissalPolicy,
    ) -> bool:
        """Stop heartbeats, send the terminal push and tear the ledger down.

        Returns True if the final snapshot was delivered with the end call.
        """
        if self._phase is SchedulerPhase.ENDED:
            return False
        self._phase = SchedulerPhase.ENDED
        self._pending = None

        if self._handle is None:
            self._ledger.reset()
            return False

        if self._in_flight is not None and not self._in_flight.done():
            await asyncio.wait({self._in_flight})
        self._apply_outcomes()

        delivered = False
        if self._ledger.remote_ended:
            logger.info("Remote session already ended; skipping end call")
        else:
            final = final_snapshot
            if self._ledger.degraded or not self._ledger.window.has_capacity():
                final = None
            try:
                await self._channel.end_session(self._handle, final, policy)
                if final is not None:
                    self._ledger.record_push(final, accepted_at=self._now())
                    delivered = True
            except ChannelError as exc:
                logger.warning("Ending remote session failed: %s", exc)

        logger.info(
            "Publication ended for v%d: %s",
            final_snapshot.version,
            self._ledger.summary(),
        )
        self._ledger.reset()
        self._handle = None
        return delivered

    async def flush(self) -> None:
        """Wait for every dispatched push and apply the outcomes."""
        if self._tasks:
            await asyncio.wait(set(self._tasks))
        self._apply_outcomes()

    # ── Decisions ────────────────────────────────────────────────────────

    def on_tick(self, snapshot: HoldoverSnapshot, *, anomaly: bool = False) -> PushReason | None:
        """Push-or-skip decision for a periodic tick."""
        return self._decide(snapshot, PushReason.CLOCK_ANOMALY if anomaly else None)

    def force(self, snapshot: HoldoverSnapshot, reason: PushReason) -> PushReason | None:
        """Push-or-defer decision for a state-defining event."""
        return self._decide(snapshot, reason)

    def heartbeat_interval(self) -> float | None:
        """Current heartbeat cadence in seconds, or None if no slots remain."""
        slots = self._ledger.window.remaining() - self._forced_reserve
        if slots <= 0:
            return None
        return max(self._minimum_interval, self._limit_seconds / slots)

    def _decide(self, snapshot: HoldoverSnapshot, event: PushReason | None) -> PushReason | None:
        self._apply_outcomes()
        if self._phase is not SchedulerPhase.ACTIVE or self._handle is None:
            return None
        if self._ledger.degraded:
            return None

        if event is not None:
            self._pending = event
        reason = self._forced_reason(snapshot)

        if reason is not None:
            if not self._ledger.window.has_capacity():
                self._pending = reason
                logger.debug(
                    "Forced push (%s) deferred, budget full for %.1fs",
                    reason.value,
                    self._ledger.window.retry_in(),
                )
                return None
            self._pending = None
            self._dispatch(snapshot, reason)
            return reason

        if snapshot.is_running and self._heartbeat_due():
            self._dispatch(snapshot, PushReason.HEARTBEAT)
            return PushReason.HEARTBEAT
        return None

    def _forced_reason(self, snapshot: HoldoverSnapshot) -> PushReason | None:
        if self._pending is not None:
            return self._pending
        last = self._ledger.last_snapshot
        if last is None:
            return PushReason.START
        if snapshot.zone is not last.zone:
            return PushReason.ZONE_TRANSITION
        if snapshot.is_running != last.is_running:
            return PushReason.RESUME if snapshot.is_running else PushReason.PAUSE
        return None

    def _heartbeat_due(self) -> bool:
        interval = self.heartbeat_interval()
        if interval is None:
            return False
        since = self._ledger.seconds_since_push()
        return since is None or since >= interval

    # ── Dispatch ─────────────────────────────────────────────────────────

    def _dispatch(self, snapshot: HoldoverSnapshot, reason: PushReason) -> None:
        assert self._handle is not None
        self._ledger.record_push(snapshot)
        task = asyncio.create_task(
            self._send(self._handle, snapshot, reason, self._in_flight)
        )
        self._in_flight = task
        self._tasks.add(task)
        task.add_done_callback(
            functools.partial(self._on_push_done, snapshot.version, reason)
        )
        logger.debug(
            "Dispatched v%d (%s), %d/%d pushes in window",
            snapshot.version,
            reason.value,
            self._ledger.window.count(),
            self._budget.pushes,
        )

    async def _send(
        self,
        handle: str,
        snapshot: HoldoverSnapshot,
        reason: PushReason,
        previous: asyncio.Task | None,
    ) -> PushOutcome:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        try:
            await self._channel.push(handle, snapshot)
        except ChannelError as exc:
            return PushOutcome(
                version=snapshot.version,
                reason=reason,
                ok=False,
                error=str(exc),
                error_type=type(exc).__name__,
                remote_ended=isinstance(exc, SessionEnded),
                accepted_at=self._now(),
            )
        return PushOutcome(
            version=snapshot.version, reason=reason, ok=True, accepted_at=self._now()
        )

    def _on_push_done(self, version: int, reason: PushReason, task: asyncio.Task) -> None:
        """Done-callback: only queues the outcome for the next decision."""
        self._tasks.discard(task)
        if task.cancelled():
            outcome = PushOutcome(version, reason, ok=True)
        elif task.exception() is not None:
            exc = task.exception()
            logger.error("Push task for v%d crashed: %s", version, exc, exc_info=exc)
            outcome = PushOutcome(
                version, reason, ok=False, error=str(exc), error_type=type(exc).__name__
            )
        else:
            outcome = task.result()
        self._ledger.queue_outcome(outcome)

    def _apply_outcomes(self) -> None:
        for outcome in self._ledger.drain_outcomes():
            self._ledger.settle_push(outcome.accepted_at)
            if outcome.ok:
                logger.debug("Push v%d (%s) delivered", outcome.version, outcome.reason.value)
                continue
            if not self._ledger.degraded:
                logger.warning(
                    "Push v%d (%s) failed with %s: %s; remote publication stopped for this session",
                    outcome.version,
                    outcome.reason.value,
                    outcome.error_type,
                    outcome.error,
                )
            self._ledger.mark_degraded(
                f"{outcome.error_type}: {outcome.error}",
                remote_ended=outcome.remote_ended,
            )

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def phase(self) -> SchedulerPhase:
        return self._phase

    @property
    def ledger(self) -> PublicationLedger:
        return self._ledger

    @property
    def budget(self) -> PushBudget:
        return self._budget

    @property
    def degraded(self) -> bool:
        return self._ledger.degraded

    @property
    def pending(self) -> PushReason | None:
        return self._pending
