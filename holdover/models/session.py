"""Request bodies for the session endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from holdover.domain.enums import DataSource, TemperatureUnit
from holdover.domain.preferences import HoldoverConfiguration
from holdover.domain.thresholds import HoldoverMetadata


class StartSessionRequest(BaseModel):
    """Start a session from explicit thresholds or from the reference tables.

    When ``use_reference`` is false both thresholds must be given.  Unit and
    data source fall back to the current preferences when omitted.
    """

    assured_seconds: float | None = Field(None, description="Explicit assured threshold")
    limit_seconds: float | None = Field(None, description="Explicit limit threshold")
    use_reference: bool = Field(False, description="Look thresholds up instead")

    fluid_type: int | str = Field(..., description="1-4, 'II' or 'Type II'")
    fluid_percentage: float = Field(100.0, ge=0.0, le=100.0)
    water_percentage: float | None = Field(None, ge=0.0, le=100.0)
    precipitation_type: str
    weather_condition: str
    temperature: float
    temperature_unit: TemperatureUnit | None = None
    flaps_extended: bool = False
    data_source: DataSource | None = None

    @model_validator(mode="after")
    def fill_water_percentage(self) -> "StartSessionRequest":
        if self.water_percentage is None:
            self.water_percentage = 100.0 - self.fluid_percentage
        return self

    def to_metadata(self, preferences: HoldoverConfiguration | None = None) -> HoldoverMetadata:
        """Build session metadata; raises pydantic.ValidationError."""
        unit = self.temperature_unit
        source = self.data_source
        if preferences is not None:
            unit = unit or preferences.temperature_unit
            source = source or preferences.data_source
        return HoldoverMetadata(
            fluid_type=self.fluid_type,
            fluid_percentage=self.fluid_percentage,
            water_percentage=self.water_percentage,
            precipitation_type=self.precipitation_type,
            weather_condition=self.weather_condition,
            temperature=self.temperature,
            temperature_unit=unit or TemperatureUnit.CELSIUS,
            flaps_extended=self.flaps_extended,
            data_source=source or DataSource.FAA,
        )


class EndSessionRequest(BaseModel):
    """Optional dismissal override for ending a session."""

    grace_seconds: float | None = Field(None, ge=0.0, description="Overrides the configured grace")
    immediate: bool = False


class PreferencesUpdate(BaseModel):
    data_source: DataSource | None = None
    temperature_unit: TemperatureUnit | None = None
