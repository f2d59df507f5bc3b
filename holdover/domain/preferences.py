"""User preferences: which regulator's tables to use and the display unit.

Readers depend on the HoldoverConfiguration protocol.  Writers depend on
MutableConfiguration, which only the writable variant implements, so no
caller ever has to inspect the concrete type to change a setting.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Protocol

from pydantic import BaseModel

from holdover.domain.enums import DataSource, TemperatureUnit

logger = logging.getLogger(__name__)


class HoldoverConfiguration(Protocol):
    """Read-only view of the preferences."""

    @property
    def data_source(self) -> DataSource: ...

    @property
    def temperature_unit(self) -> TemperatureUnit: ...

    def to_dict(self) -> dict: ...


class MutableConfiguration(ABC):
    """Write capability for preferences."""

    @property
    @abstractmethod
    def data_source(self) -> DataSource: ...

    @property
    @abstractmethod
    def temperature_unit(self) -> TemperatureUnit: ...

    @abstractmethod
    def set_data_source(self, source: DataSource) -> None: ...

    @abstractmethod
    def set_temperature_unit(self, unit: TemperatureUnit) -> None: ...

    def to_dict(self) -> dict:
        return {
            "data_source": self.data_source.value,
            "temperature_unit": self.temperature_unit.value,
        }


class UserPreferences(MutableConfiguration):
    """In-memory preferences that the user may change at runtime."""

    __slots__ = ("_data_source", "_temperature_unit")

    def __init__(
        self,
        data_source: DataSource = DataSource.FAA,
        temperature_unit: TemperatureUnit = TemperatureUnit.CELSIUS,
    ) -> None:
        self._data_source = DataSource(data_source)
        self._temperature_unit = TemperatureUnit(temperature_unit)

    @property
    def data_source(self) -> DataSource:
        return self._data_source

    @property
    def temperature_unit(self) -> TemperatureUnit:
        return self._temperature_unit

    def set_data_source(self, source: DataSource) -> None:
        source = DataSource(source)
        if source is not self._data_source:
            logger.info("Data source changed %s → %s", self._data_source.value, source.value)
        self._data_source = source

    def set_temperature_unit(self, unit: TemperatureUnit) -> None:
        unit = TemperatureUnit(unit)
        if unit is not self._temperature_unit:
            logger.info("Temperature unit changed %s → %s", self._temperature_unit.value, unit.value)
        self._temperature_unit = unit


class FixedConfiguration(BaseModel):
    """Read-only preferences, e.g. pinned by deployment."""

    data_source: DataSource = DataSource.FAA
    temperature_unit: TemperatureUnit = TemperatureUnit.CELSIUS

    model_config = {"frozen": True}

    def to_dict(self) -> dict:
        return {
            "data_source": self.data_source.value,
            "temperature_unit": self.temperature_unit.value,
        }
