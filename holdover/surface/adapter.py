"""RemoteDisplayAdapter — the consumer end of the publication channel.

Receives snapshots and derives purely presentational values from them:
status colour, fluid badge colour, progress-bar geometry and text labels.  It has no clock and
performs no timing logic.  Between pushes it renders the last snapshot as
is; it does not extrapolate elapsed time.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from holdover.domain.enums import FluidColor, FluidType, StatusColor, Zone
from holdover.domain.snapshot import HoldoverSnapshot
from holdover.present.formatter import ClockFormatter

logger = logging.getLogger(__name__)

LOCK_SCREEN_CEILING = 1.0
COMPACT_CEILING = 1.2

_ZONE_COLOR = {
    Zone.SAFE: StatusColor.GREEN,
    Zone.CAUTION: StatusColor.ORANGE,
    Zone.EXPIRED: StatusColor.RED,
}

_FLUID_COLOR = {
    FluidType.TYPE_I: FluidColor.ORANGE,
    FluidType.TYPE_II: FluidColor.STRAW,
    FluidType.TYPE_III: FluidColor.YELLOW,
    FluidType.TYPE_IV: FluidColor.GREEN,
}


class BarGeometry(BaseModel):
    """Fractions of the full bar width for the lock-screen progress bar."""

    assured_fraction: float = Field(..., description="Width of the assured (green) track")
    caution_fraction: float = Field(..., description="Width of the caution (orange) track")
    fill_fraction: float = Field(..., ge=0.0, le=1.0)
    at_limit: bool
    indicator_offset: float | None = Field(
        None, description="Position of the current-time marker; hidden at limit"
    )

    model_config = {"frozen": True}


class SurfaceRender(BaseModel):
    """Everything a surface needs to draw, derived from one snapshot."""

    session_id: str
    version: int
    status_color: StatusColor
    bar: BarGeometry
    compact_progress: float
    elapsed_label: str
    compact_elapsed_label: str
    assured_label: str
    limit_label: str
    fluid_label: str
    fluid_color: FluidColor
    mix_label: str
    temperature_label: str
    weather_label: str
    precipitation_label: str
    flaps_extended: bool
    paused: bool
    final: bool

    model_config = {"frozen": True}


def derive_render(snapshot: HoldoverSnapshot) -> SurfaceRender:
    """Pure derivation of presentational values from a snapshot."""
    ratio = snapshot.assured_ratio
    at_limit = snapshot.progress >= 1.0
    fill = min(snapshot.progress, LOCK_SCREEN_CEILING)

    bar = BarGeometry(
        assured_fraction=ratio,
        caution_fraction=1.0 - ratio,
        fill_fraction=fill,
        at_limit=at_limit,
        indicator_offset=None if at_limit else fill,
    )
    return SurfaceRender(
        session_id=snapshot.session_id,
        version=snapshot.version,
        status_color=_ZONE_COLOR[snapshot.zone],
        bar=bar,
        compact_progress=min(snapshot.progress, COMPACT_CEILING),
        elapsed_label=snapshot.elapsed_clock,
        compact_elapsed_label=snapshot.elapsed_compact,
        assured_label=snapshot.assured_time_zulu,
        limit_label=snapshot.limit_time_zulu,
        fluid_label=ClockFormatter.fluid_type(snapshot.fluid_type),
        fluid_color=_FLUID_COLOR[snapshot.fluid_type],
        mix_label=ClockFormatter.mix(snapshot.fluid_percentage, snapshot.water_percentage),
        temperature_label=ClockFormatter.temperature(snapshot.temperature, snapshot.temperature_unit),
        weather_label=snapshot.weather_condition,
        precipitation_label=snapshot.precipitation_type,
        flaps_extended=snapshot.flaps_extended,
        paused=not snapshot.is_running,
        final=snapshot.is_final,
    )


class RemoteDisplayAdapter:
    """Holds the latest snapshot a surface has received and its render.

    Stale or duplicate snapshots (version not newer for the same session)
    are ignored, so reordered deliveries never move the display backward.
    """

    __slots__ = ("_snapshot", "_render", "_received", "_ignored")

    def __init__(self) -> None:
        self._snapshot: HoldoverSnapshot | None = None
        self._render: SurfaceRender | None = None
        self._received = 0
        self._ignored = 0

    def receive(self, snapshot: HoldoverSnapshot) -> SurfaceRender | None:
        """Accept a snapshot; returns the new render, or None if ignored."""
        current = self._snapshot
        if (
            current is not None
            and current.session_id == snapshot.session_id
            and snapshot.version <= current.version
        ):
            self._ignored += 1
            logger.debug(
                "Ignored stale snapshot v%d (showing v%d)", snapshot.version, current.version
            )
            return None

        self._snapshot = snapshot
        self._render = derive_render(snapshot)
        self._received += 1
        return self._render

    def receive_wire(self, payload: dict[str, Any]) -> SurfaceRender | None:
        """Accept a camelCase wire payload."""
        return self.receive(HoldoverSnapshot.model_validate(payload))

    def dismiss(self) -> None:
        self._snapshot = None
        self._render = None

    @property
    def snapshot(self) -> HoldoverSnapshot | None:
        return self._snapshot

    @property
    def render(self) -> SurfaceRender | None:
        return self._render

    @property
    def visible(self) -> bool:
        return self._render is not None

    @property
    def received_count(self) -> int:
        return self._received

    @property
    def ignored_count(self) -> int:
        return self._ignored
