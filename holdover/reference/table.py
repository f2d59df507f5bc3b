"""Table-driven ThresholdSource.

Entries are matched in order; the first entry whose data source, fluid
type, fluid percentage, precipitation and temperature band all match wins.
No tables ship with the package; they are loaded from JSON:

    [
      {"data_source": "FAA", "fluid_type": "II", "fluid_percentage": 100,
       "precipitation": "light snow", "min_temperature_c": -3, "max_temperature_c": 0,
       "assured_seconds": 1080, "limit_seconds": 1560},
      ...
    ]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from holdover.domain.enums import DataSource, FluidType, TemperatureUnit
from holdover.domain.thresholds import (
    ConfigurationError,
    ThresholdSet,
    fahrenheit_to_celsius,
)
from holdover.reference.base import NoApplicableTable, ThresholdSource

logger = logging.getLogger(__name__)


class HoldoverTableEntry(BaseModel):
    """One row of a hold-over table.  The temperature band is inclusive."""

    data_source: DataSource
    fluid_type: FluidType
    fluid_percentage: float = Field(..., ge=0.0, le=100.0)
    precipitation: str = Field(..., min_length=1)
    min_temperature_c: float
    max_temperature_c: float
    assured_seconds: float = Field(..., gt=0.0)
    limit_seconds: float = Field(..., gt=0.0)

    model_config = {"frozen": True}

    @field_validator("fluid_type", mode="before")
    @classmethod
    def parse_fluid_type(cls, v: object) -> FluidType:
        return FluidType.parse(v)

    @field_validator("precipitation")
    @classmethod
    def normalise_precipitation(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def band_must_be_ordered(self) -> "HoldoverTableEntry":
        if self.min_temperature_c > self.max_temperature_c:
            raise ValueError("min_temperature_c must not exceed max_temperature_c")
        if self.limit_seconds <= self.assured_seconds:
            raise ValueError("limit_seconds must be greater than assured_seconds")
        return self

    def matches(
        self,
        data_source: DataSource,
        fluid_type: FluidType,
        fluid_percentage: float,
        precipitation: str,
        temperature_c: float,
    ) -> bool:
        return (
            self.data_source is data_source
            and self.fluid_type is fluid_type
            and abs(self.fluid_percentage - fluid_percentage) < 1e-6
            and self.precipitation == precipitation
            and self.min_temperature_c <= temperature_c <= self.max_temperature_c
        )


class TableThresholdSource(ThresholdSource):
    """First-match lookup over an ordered list of table entries.

    Args:
        entries: Table rows, in priority order.
        data_source: Regulator used when the caller does not name one.
    """

    def __init__(
        self,
        entries: list[HoldoverTableEntry],
        data_source: DataSource = DataSource.FAA,
    ) -> None:
        self._entries = list(entries)
        self._data_source = DataSource(data_source)
        logger.info(
            "Loaded %d hold-over table entries (default source %s)",
            len(self._entries),
            self._data_source.value,
        )

    @classmethod
    def from_json(
        cls,
        path: str | Path,
        data_source: DataSource = DataSource.FAA,
    ) -> "TableThresholdSource":
        """Load entries from a JSON array file.

        Raises:
            ConfigurationError: If the file is unreadable or malformed.
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"cannot read threshold table {path}: {exc}") from exc
        if not isinstance(raw, list):
            raise ConfigurationError(f"threshold table {path} must be a JSON array")
        try:
            entries = [HoldoverTableEntry.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise ConfigurationError(f"invalid threshold table {path}: {exc}") from exc
        return cls(entries, data_source)

    @property
    def source_name(self) -> str:
        return f"table:{self._data_source.value}"

    def __len__(self) -> int:
        return len(self._entries)

    def compute_thresholds(
        self,
        fluid_type: FluidType,
        fluid_percentage: float,
        precipitation: str,
        temperature: float,
        unit: TemperatureUnit,
        data_source: DataSource | None = None,
    ) -> ThresholdSet:
        source = DataSource(data_source) if data_source is not None else self._data_source
        fluid = FluidType.parse(fluid_type)
        precip = precipitation.strip().lower()
        temperature_c = temperature
        if TemperatureUnit(unit) is TemperatureUnit.FAHRENHEIT:
            temperature_c = fahrenheit_to_celsius(temperature)

        for entry in self._entries:
            if entry.matches(source, fluid, fluid_percentage, precip, temperature_c):
                logger.debug(
                    "Table match for %s Type %s %.0f%% '%s' at %.1f°C: %.0f/%.0fs",
                    source.value,
                    fluid.roman,
                    fluid_percentage,
                    precip,
                    temperature_c,
                    entry.assured_seconds,
                    entry.limit_seconds,
                )
                return ThresholdSet(
                    assured_seconds=entry.assured_seconds,
                    limit_seconds=entry.limit_seconds,
                )

        raise NoApplicableTable(
            f"no {source.value} table for Type {fluid.roman} {fluid_percentage:g}% "
            f"in '{precip}' at {temperature_c:.1f}°C"
        )
