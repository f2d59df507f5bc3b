"""Snapshot models — the immutable values that leave the timer core.

SessionState is what the timer says at a point in time.  HoldoverSnapshot is
the wire-level contract with the remote surface: everything it needs to
render, and nothing it would have to compute with a clock of its own.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from holdover.domain.enums import (
    DataSource,
    FluidType,
    TemperatureUnit,
    TimerPhase,
    Zone,
)


class SessionState(BaseModel):
    """Immutable observation of the timer core."""

    phase: TimerPhase
    elapsed_seconds: float = Field(..., ge=0.0, description="Seconds since start minus paused time")
    is_running: bool
    started_at: datetime | None = Field(None, description="Wall-clock start, never re-based")
    start_reference: datetime | None = Field(None, description="Reference elapsed is measured from")
    paused_accumulated: timedelta = timedelta(0)

    model_config = {"frozen": True}


_WIRE_CONFIG = {
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class SessionAttributes(BaseModel):
    """Static attributes handed to the channel when a remote session opens."""

    session_id: str
    timer_start_time: datetime
    assured_time_seconds: float
    limit_time_seconds: float
    data_source: DataSource

    model_config = _WIRE_CONFIG


class HoldoverSnapshot(BaseModel):
    """Versioned, immutable render input for the remote surface.

    Serialised with camelCase keys (``to_wire()``) to match the surface's
    schema.  A newer version for the same session supersedes older ones.
    """

    session_id: str
    version: int = Field(..., ge=1)

    # Timer
    is_running: bool
    elapsed_seconds: float = Field(..., ge=0.0)
    elapsed_clock: str = Field(..., description="HH:MM:SS for the primary surface")
    elapsed_compact: str = Field(..., description="MM:SS for space-constrained surfaces")
    timer_start_time: datetime

    # Thresholds
    assured_time_zulu: str = Field(..., description="Absolute assured time, HH:MMz")
    limit_time_zulu: str = Field(..., description="Absolute limit time, HH:MMz")
    assured_time_seconds: float
    limit_time_seconds: float
    progress: float = Field(..., ge=0.0, description="elapsed / limit, display-capped")
    zone: Zone

    # Descriptive metadata, echoed on every push
    fluid_type: FluidType
    fluid_percentage: float
    water_percentage: float
    precipitation_type: str
    weather_condition: str
    temperature: float
    temperature_unit: TemperatureUnit
    flaps_extended: bool
    data_source: DataSource

    is_final: bool = False

    model_config = _WIRE_CONFIG

    @property
    def assured_ratio(self) -> float:
        return self.assured_time_seconds / self.limit_time_seconds

    def to_wire(self) -> dict[str, Any]:
        """JSON-safe dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
