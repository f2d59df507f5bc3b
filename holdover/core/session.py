"""HoldoverSession — the per-session context object.

Created by the controller once the timer has started, and discarded on
reset.  Ties one TimerCore run to its thresholds, metadata, snapshot
builder and publication scheduler, and keeps the zone latch:

    tick → TimerCore.tick → classify → escalate → build → scheduler.on_tick

The session never blocks on the remote channel.  Every operation returns
the snapshot it produced, which is always the local truth regardless of
what reached the surface.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime

from holdover.core.snapshot_builder import SnapshotBuilder
from holdover.core.timer import TimerCore
from holdover.core.zone_engine import (
    DEFAULT_PROGRESS_CEILING,
    ZoneReading,
    classify,
    escalate,
)
from holdover.domain.enums import PushReason, Zone
from holdover.domain.snapshot import HoldoverSnapshot
from holdover.domain.thresholds import HoldoverMetadata, ThresholdSet
from holdover.publish.channel import DismissalPolicy
from holdover.publish.scheduler import PublicationScheduler

logger = logging.getLogger(__name__)


class HoldoverSession:
    """One hold-over countdown from start to end.

    Args:
        session_id: Identifier echoed on every snapshot.
        thresholds: Validated (assured, limit) pair.
        metadata: Descriptive context for the surface.
        timer: A TimerCore that has already been started.
        scheduler: A fresh (idle) PublicationScheduler.
        progress_ceiling: Display cap for reported progress.
    """

    def __init__(
        self,
        session_id: str,
        thresholds: ThresholdSet,
        metadata: HoldoverMetadata,
        timer: TimerCore,
        scheduler: PublicationScheduler,
        *,
        progress_ceiling: float = DEFAULT_PROGRESS_CEILING,
    ) -> None:
        if timer.started_at is None:
            raise ValueError("timer must be started before a session is created")
        self.session_id = session_id
        self.thresholds = thresholds
        self.metadata = metadata
        self._timer = timer
        self._scheduler = scheduler
        self._ceiling = progress_ceiling
        self._builder = SnapshotBuilder(session_id, thresholds, metadata, timer.started_at)
        self._zone: Zone | None = None
        self._latest: HoldoverSnapshot | None = None
        self._final: HoldoverSnapshot | None = None

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def begin(self) -> HoldoverSnapshot:
        """Open the remote session with the initial snapshot."""
        snapshot = self._snapshot()
        await self._scheduler.start(snapshot, self._builder.attributes())
        logger.info(
            "Session %s started: assured %s, limit %s",
            self.session_id,
            self._builder.assured_time_zulu,
            self._builder.limit_time_zulu,
        )
        return snapshot

    def tick(self, now: datetime | None = None) -> HoldoverSnapshot:
        """Advance the timer, classify and offer the result for publication."""
        reading = self._timer.tick(now)
        snapshot = self._snapshot()
        self._scheduler.on_tick(snapshot, anomaly=reading.anomaly is not None)
        return snapshot

    def pause(self) -> HoldoverSnapshot:
        self._timer.pause()
        snapshot = self._snapshot()
        self._scheduler.force(snapshot, PushReason.PAUSE)
        return snapshot

    def resume(self) -> HoldoverSnapshot:
        self._timer.resume()
        snapshot = self._snapshot()
        self._scheduler.force(snapshot, PushReason.RESUME)
        return snapshot

    async def end(self, policy: DismissalPolicy) -> HoldoverSnapshot:
        """Stop the timer and hand the final snapshot to the scheduler."""
        if self._timer.is_live:
            self._timer.stop()
        final = self._snapshot(is_final=True)
        self._final = final
        delivered = await self._scheduler.end(final, policy)
        logger.info(
            "Session %s ended at %s in zone %s (final snapshot %s)",
            self.session_id,
            final.elapsed_clock,
            final.zone.value,
            "delivered" if delivered else "not delivered",
        )
        return final

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def latest(self) -> HoldoverSnapshot | None:
        return self._latest

    @property
    def zone(self) -> Zone | None:
        return self._zone

    @property
    def scheduler(self) -> PublicationScheduler:
        return self._scheduler

    @property
    def ended(self) -> bool:
        return self._final is not None

    # ── Internals ────────────────────────────────────────────────────────

    def _classify(self) -> ZoneReading:
        reading = classify(self._timer.elapsed_seconds, self.thresholds, self._ceiling)
        latched = escalate(self._zone, reading.zone)
        if latched is not reading.zone:
            reading = dataclasses.replace(reading, zone=latched)
        if latched is not self._zone:
            if self._zone is not None:
                logger.info(
                    "Session %s zone %s → %s at %.0fs",
                    self.session_id,
                    self._zone.value,
                    latched.value,
                    self._timer.elapsed_seconds,
                )
            self._zone = latched
        return reading

    def _snapshot(self, *, is_final: bool = False) -> HoldoverSnapshot:
        snapshot = self._builder.build(self._timer.state, self._classify(), is_final=is_final)
        self._latest = snapshot
        return snapshot
