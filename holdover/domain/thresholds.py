"""ThresholdSet and session metadata — the inputs handed to a session.

Both are supplied by the reference collaborator (or the caller) once at
session start and are immutable for the life of the session.  Invalid
thresholds are rejected here, never silently clamped.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from holdover.domain.enums import DataSource, FluidType, TemperatureUnit


class ConfigurationError(Exception):
    """Raised when a session cannot be created from the given configuration."""


# ── ThresholdSet ─────────────────────────────────────────────────────────────

class ThresholdSet(BaseModel):
    """Immutable (assured, limit) pair in seconds since fluid application."""

    assured_seconds: float = Field(
        ..., gt=0.0, allow_inf_nan=False,
        description="Seconds before which protection is fully assured",
    )
    limit_seconds: float = Field(
        ..., gt=0.0, allow_inf_nan=False,
        description="Seconds after which protection is no longer assured",
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def limit_must_exceed_assured(self) -> "ThresholdSet":
        if self.limit_seconds <= self.assured_seconds:
            raise ValueError(
                f"limit_seconds ({self.limit_seconds}) must be greater than "
                f"assured_seconds ({self.assured_seconds})"
            )
        return self

    @property
    def assured_ratio(self) -> float:
        return self.assured_seconds / self.limit_seconds


def validate_thresholds(
    assured_seconds: float | None,
    limit_seconds: float | None,
    *,
    max_session_seconds: float | None = None,
) -> ThresholdSet:
    """Build a ThresholdSet or raise ConfigurationError.

    Args:
        assured_seconds: Assured threshold, must be > 0.
        limit_seconds: Limit threshold, must be > assured_seconds.
        max_session_seconds: Optional upper bound on limit_seconds.
    """
    if assured_seconds is None or limit_seconds is None:
        raise ConfigurationError("both assured_seconds and limit_seconds are required")
    try:
        thresholds = ThresholdSet(
            assured_seconds=assured_seconds, limit_seconds=limit_seconds
        )
    except ValidationError as exc:
        raise ConfigurationError(f"invalid thresholds: {exc.errors()[0]['msg']}") from exc

    if max_session_seconds is not None and thresholds.limit_seconds > max_session_seconds:
        raise ConfigurationError(
            f"limit_seconds ({thresholds.limit_seconds}) exceeds the maximum "
            f"session length ({max_session_seconds})"
        )
    return thresholds


# ── Metadata ─────────────────────────────────────────────────────────────────

class HoldoverMetadata(BaseModel):
    """Descriptive context echoed on every snapshot.

    Static for the life of a session.  Carries no timing information.
    """

    fluid_type: FluidType = Field(..., description="SAE fluid type (I-IV)")
    fluid_percentage: float = Field(..., ge=0.0, le=100.0, description="Fluid share of the mix")
    water_percentage: float = Field(..., ge=0.0, le=100.0, description="Water share of the mix")
    precipitation_type: str = Field(..., min_length=1, max_length=64)
    weather_condition: str = Field(..., min_length=1, max_length=128)
    temperature: float = Field(..., allow_inf_nan=False, description="Outside air temperature")
    temperature_unit: TemperatureUnit = TemperatureUnit.CELSIUS
    flaps_extended: bool = False
    data_source: DataSource = DataSource.FAA

    model_config = {"frozen": True}

    @field_validator("fluid_type", mode="before")
    @classmethod
    def parse_fluid_type(cls, v: object) -> FluidType:
        return FluidType.parse(v)

    @model_validator(mode="after")
    def mix_must_total_100(self) -> "HoldoverMetadata":
        if abs(self.fluid_percentage + self.water_percentage - 100.0) > 1e-6:
            raise ValueError(
                f"fluid/water mix must total 100 "
                f"(got {self.fluid_percentage}/{self.water_percentage})"
            )
        return self


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32.0) * 5.0 / 9.0
