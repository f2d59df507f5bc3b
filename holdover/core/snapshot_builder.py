"""SnapshotBuilder — assembles versioned HoldoverSnapshots for one session.

The absolute clock labels (assured / limit time of day) are formatted once
at construction from the session start and never change afterwards.
Everything else is copied from its inputs; building cannot fail.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from holdover.core.zone_engine import ZoneReading
from holdover.domain.snapshot import HoldoverSnapshot, SessionAttributes, SessionState
from holdover.domain.thresholds import HoldoverMetadata, ThresholdSet
from holdover.present.formatter import ClockFormatter


class SnapshotBuilder:
    """Builds snapshots with strictly increasing versions."""

    __slots__ = (
        "_session_id",
        "_thresholds",
        "_metadata",
        "_started_at",
        "_assured_zulu",
        "_limit_zulu",
        "_version",
    )

    def __init__(
        self,
        session_id: str,
        thresholds: ThresholdSet,
        metadata: HoldoverMetadata,
        started_at: datetime,
    ) -> None:
        self._session_id = session_id
        self._thresholds = thresholds
        self._metadata = metadata
        self._started_at = started_at
        self._assured_zulu = ClockFormatter.zulu(
            started_at + timedelta(seconds=thresholds.assured_seconds)
        )
        self._limit_zulu = ClockFormatter.zulu(
            started_at + timedelta(seconds=thresholds.limit_seconds)
        )
        self._version = 0

    @property
    def version(self) -> int:
        """Version of the most recently built snapshot (0 if none)."""
        return self._version

    @property
    def assured_time_zulu(self) -> str:
        return self._assured_zulu

    @property
    def limit_time_zulu(self) -> str:
        return self._limit_zulu

    def attributes(self) -> SessionAttributes:
        return SessionAttributes(
            session_id=self._session_id,
            timer_start_time=self._started_at,
            assured_time_seconds=self._thresholds.assured_seconds,
            limit_time_seconds=self._thresholds.limit_seconds,
            data_source=self._metadata.data_source,
        )

    def build(
        self,
        state: SessionState,
        reading: ZoneReading,
        *,
        is_final: bool = False,
    ) -> HoldoverSnapshot:
        self._version += 1
        meta = self._metadata
        elapsed = state.elapsed_seconds
        return HoldoverSnapshot(
            session_id=self._session_id,
            version=self._version,
            is_running=state.is_running,
            elapsed_seconds=elapsed,
            elapsed_clock=ClockFormatter.elapsed(elapsed),
            elapsed_compact=ClockFormatter.elapsed_compact(elapsed),
            timer_start_time=self._started_at,
            assured_time_zulu=self._assured_zulu,
            limit_time_zulu=self._limit_zulu,
            assured_time_seconds=self._thresholds.assured_seconds,
            limit_time_seconds=self._thresholds.limit_seconds,
            progress=reading.progress,
            zone=reading.zone,
            fluid_type=meta.fluid_type,
            fluid_percentage=meta.fluid_percentage,
            water_percentage=meta.water_percentage,
            precipitation_type=meta.precipitation_type,
            weather_condition=meta.weather_condition,
            temperature=meta.temperature,
            temperature_unit=meta.temperature_unit,
            flaps_extended=meta.flaps_extended,
            data_source=meta.data_source,
            is_final=is_final,
        )
