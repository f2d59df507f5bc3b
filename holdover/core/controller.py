"""HoldoverController — the operation entry points for the service.

Owns the TimerCore and at most one HoldoverSession.  Validation happens
before anything is created: a ConfigurationError leaves the controller
exactly as it was.  State errors from the timer propagate unchanged.

The controller also owns the push-budget window for its channel, so
back-to-back sessions share one budget the way the remote surface does.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any

from holdover.config import Settings
from holdover.core.session import HoldoverSession
from holdover.core.timer import NoSession, NotPaused, NotRunning, TimerCore
from holdover.domain.enums import TimerPhase
from holdover.domain.preferences import HoldoverConfiguration
from holdover.domain.snapshot import HoldoverSnapshot
from holdover.domain.thresholds import ConfigurationError, HoldoverMetadata, validate_thresholds
from holdover.foundation.clock import Clock, utc_now
from holdover.foundation.identifiers import new_id
from holdover.publish.channel import DismissalPolicy, DisplayChannel
from holdover.publish.scheduler import PublicationScheduler
from holdover.publish.window import RollingWindow, TimeFn
from holdover.reference.base import ThresholdSource

logger = logging.getLogger(__name__)


class HoldoverController:
    """Runs one hold-over session at a time.

    Args:
        channel: Remote display channel shared by every session.
        settings: Timer and publication tuning.
        clock: Wall-clock source for the timer.
        now_fn: Monotonic source for the push-budget window.
        threshold_source: Optional reference lookup for start_from_reference.
        preferences: Supplies the default data source for lookups.
    """

    def __init__(
        self,
        channel: DisplayChannel,
        settings: Settings,
        *,
        clock: Clock = utc_now,
        now_fn: TimeFn | None = None,
        threshold_source: ThresholdSource | None = None,
        preferences: HoldoverConfiguration | None = None,
    ) -> None:
        self._channel = channel
        self._settings = settings
        self._now_fn = now_fn or time.monotonic
        self._threshold_source = threshold_source
        self._preferences = preferences
        self._timer = TimerCore(
            clock=clock,
            suspension_threshold_seconds=settings.suspension_threshold_seconds,
        )
        budget = channel.budget
        self._window = RollingWindow(
            limit=budget.pushes,
            window_seconds=budget.window_seconds,
            now_fn=self._now_fn,
        )
        self._session: HoldoverSession | None = None

    # ── Session lifecycle ────────────────────────────────────────────────

    async def start_session(
        self,
        assured_seconds: float | None,
        limit_seconds: float | None,
        metadata: HoldoverMetadata,
    ) -> HoldoverSnapshot:
        """Validate the thresholds, start the timer and open publication.

        Raises:
            ConfigurationError: Invalid thresholds; nothing was created.
            AlreadyRunning: A session is running or paused.

        A channel failure other than ChannelError propagates after the
        timer is stopped and the half-started session discarded.
        """
        thresholds = validate_thresholds(
            assured_seconds,
            limit_seconds,
            max_session_seconds=self._settings.max_session_seconds,
        )
        self._timer.start(thresholds)

        scheduler = PublicationScheduler(
            self._channel,
            minimum_interval_seconds=self._settings.minimum_push_interval_seconds,
            forced_reserve=self._settings.forced_push_reserve,
            now_fn=self._now_fn,
            window=self._window,
        )
        session = HoldoverSession(
            str(new_id()),
            thresholds,
            metadata,
            self._timer,
            scheduler,
            progress_ceiling=self._settings.progress_ceiling,
        )
        self._session = session
        try:
            return await session.begin()
        except Exception as exc:
            logger.error("Session %s failed to start: %s", session.session_id, exc, exc_info=True)
            self._timer.stop()
            self._timer.reset()
            self._session = None
            raise

    async def start_from_reference(self, metadata: HoldoverMetadata) -> HoldoverSnapshot:
        """Look the thresholds up from the reference source, then start.

        Raises:
            ConfigurationError: No source is configured, or it has no
                applicable table (NoApplicableTable).
        """
        if self._threshold_source is None:
            raise ConfigurationError("no threshold reference is configured")
        thresholds = self._threshold_source.compute_thresholds(
            metadata.fluid_type,
            metadata.fluid_percentage,
            metadata.precipitation_type,
            metadata.temperature,
            metadata.temperature_unit,
            metadata.data_source,
        )
        logger.info(
            "Thresholds from %s: %.0f/%.0fs",
            self._threshold_source.source_name,
            thresholds.assured_seconds,
            thresholds.limit_seconds,
        )
        return await self.start_session(
            thresholds.assured_seconds, thresholds.limit_seconds, metadata
        )

    def pause(self) -> HoldoverSnapshot:
        return self._live_session(NotRunning, "pause").pause()

    def resume(self) -> HoldoverSnapshot:
        return self._live_session(NotPaused, "resume").resume()

    async def end_session(self, policy: DismissalPolicy | None = None) -> HoldoverSnapshot:
        """End the live session; the surface is dismissed after the grace period."""
        session = self._live_session(NoSession, "end")
        if policy is None:
            policy = DismissalPolicy.after(self._settings.dismissal_grace_seconds)
        return await session.end(policy)

    def reset(self) -> None:
        """Discard the ended session and return to idle."""
        self._timer.reset()
        if self._session is not None:
            logger.info("Session %s discarded", self._session.session_id)
        self._session = None

    # ── Periodic ─────────────────────────────────────────────────────────

    def tick(self, now: datetime | None = None) -> HoldoverSnapshot | None:
        """Drive the live session, if any.  Returns the fresh snapshot."""
        if self._session is None or not self._timer.is_live:
            return None
        return self._session.tick(now)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def session(self) -> HoldoverSession | None:
        return self._session

    @property
    def phase(self) -> TimerPhase:
        return self._timer.phase

    @property
    def preferences(self) -> HoldoverConfiguration | None:
        return self._preferences

    @property
    def window(self) -> RollingWindow:
        return self._window

    def status(self) -> dict[str, Any]:
        """Local truth: timer state plus a publication summary."""
        state = self._timer.state
        session = self._session
        result: dict[str, Any] = {
            "phase": state.phase.value,
            "elapsed_seconds": state.elapsed_seconds,
            "is_running": state.is_running,
            "started_at": state.started_at.isoformat() if state.started_at else None,
            "session_id": None,
            "zone": None,
            "snapshot": None,
            "publication": None,
        }
        if session is None:
            return result

        latest = session.latest
        scheduler = session.scheduler
        result.update(
            session_id=session.session_id,
            zone=session.zone.value if session.zone else None,
            snapshot=latest.to_wire() if latest else None,
            publication={
                "phase": scheduler.phase.value,
                "degraded": scheduler.degraded,
                "degraded_reason": scheduler.ledger.degraded_reason,
                "pending": scheduler.pending.value if scheduler.pending else None,
                "heartbeat_interval": scheduler.heartbeat_interval(),
                "total_pushes": scheduler.ledger.total_pushes,
                "window_remaining": self._window.remaining(),
                "budget": scheduler.budget.model_dump(),
            },
        )
        return result

    # ── Internals ────────────────────────────────────────────────────────

    def _live_session(self, error: type[Exception], action: str) -> HoldoverSession:
        if self._session is None or not self._timer.is_live:
            raise error(f"cannot {action}: timer is {self._timer.phase.value}")
        return self._session
