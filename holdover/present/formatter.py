"""ClockFormatter — string formatting for clocks and descriptive labels.

Pure, stateless helpers shared by the snapshot builder (producer side) and
the remote display adapter (consumer side).
"""

from __future__ import annotations

from datetime import datetime, timezone

from holdover.domain.enums import FluidType, TemperatureUnit


class ClockFormatter:
    """Deterministic formatting.  No clocks are read here."""

    @staticmethod
    def zulu(moment: datetime) -> str:
        """Time of day in UTC, e.g. ``15:45z``."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc).strftime("%H:%Mz")

    @staticmethod
    def elapsed(seconds: float) -> str:
        """Zero-padded ``HH:MM:SS`` for the primary surface."""
        total = max(int(seconds), 0)
        hours, rest = divmod(total, 3600)
        minutes, secs = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"

    @staticmethod
    def elapsed_compact(seconds: float) -> str:
        """``MM:SS`` for space-constrained surfaces; minutes are not wrapped."""
        total = max(int(seconds), 0)
        minutes, secs = divmod(total, 60)
        return f"{minutes:02d}:{secs:02d}"

    @staticmethod
    def fluid_type(fluid: FluidType) -> str:
        return f"Type {fluid.roman}"

    @staticmethod
    def mix(fluid_percentage: float, water_percentage: float) -> str:
        return f"{int(fluid_percentage)}/{int(water_percentage)}"

    @staticmethod
    def temperature(value: float, unit: TemperatureUnit) -> str:
        return f"{int(value)}°{unit.value}"
