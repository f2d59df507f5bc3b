"""Controlled enumerations for the holdover domain.

Every categorical field in the domain MUST reference an enum defined here.
Raw string codes are parsed into these at the boundary and rejected when
unrecognized.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class Zone(str, Enum):
    """Classification of elapsed time against the hold-over thresholds."""

    SAFE = "safe"
    CAUTION = "caution"
    EXPIRED = "expired"

    @property
    def severity(self) -> int:
        return _ZONE_SEVERITY[self]


_ZONE_SEVERITY = {Zone.SAFE: 0, Zone.CAUTION: 1, Zone.EXPIRED: 2}


class FluidType(IntEnum):
    """SAE de/anti-icing fluid types."""

    TYPE_I = 1
    TYPE_II = 2
    TYPE_III = 3
    TYPE_IV = 4

    @property
    def roman(self) -> str:
        return _ROMAN[self]

    @classmethod
    def parse(cls, value: object) -> "FluidType":
        """Accept 2, "2", "II" or "Type II"; reject anything else."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"unrecognized fluid type: {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            token = value.strip().upper()
            if token.startswith("TYPE"):
                token = token[4:].strip()
            if token.isdigit():
                return cls(int(token))
            for member, numeral in _ROMAN.items():
                if token == numeral:
                    return member
        raise ValueError(f"unrecognized fluid type: {value!r}")


_ROMAN = {
    FluidType.TYPE_I: "I",
    FluidType.TYPE_II: "II",
    FluidType.TYPE_III: "III",
    FluidType.TYPE_IV: "IV",
}


class TemperatureUnit(str, Enum):
    CELSIUS = "C"
    FAHRENHEIT = "F"


class DataSource(str, Enum):
    """Regulator whose hold-over tables are used."""

    FAA = "FAA"
    TCA = "TCA"


class TimerPhase(str, Enum):
    """Explicit lifecycle states for the timer core."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class SchedulerPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


class PushReason(str, Enum):
    """Why a snapshot was pushed to the remote surface."""

    START = "start"
    ZONE_TRANSITION = "zone_transition"
    PAUSE = "pause"
    RESUME = "resume"
    CLOCK_ANOMALY = "clock_anomaly"
    HEARTBEAT = "heartbeat"
    END = "end"


class ClockAnomalyKind(str, Enum):
    BACKWARD = "backward"
    SUSPENSION = "suspension"


class StatusColor(str, Enum):
    """Presentational status colour derived on the remote surface."""

    GREEN = "green"
    ORANGE = "orange"
    RED = "red"


class FluidColor(str, Enum):
    """Badge colour for a fluid type, following the SAE dye convention."""

    ORANGE = "orange"
    STRAW = "straw"
    YELLOW = "yellow"
    GREEN = "green"
