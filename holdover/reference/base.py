"""Abstract base for hold-over threshold sources.

A ThresholdSource turns fluid, weather and configuration inputs into the
(assured, limit) pair a session runs against.  Sources are consulted once,
before a session starts; the timer never calls back into them.

Architectural rules:
    1. compute_thresholds() returns a valid ThresholdSet or raises.
    2. Sources hold no session state.
    3. Temperatures in Fahrenheit are converted before matching.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from holdover.domain.enums import DataSource, FluidType, TemperatureUnit
from holdover.domain.thresholds import ConfigurationError, ThresholdSet


class NoApplicableTable(ConfigurationError):
    """Raised when no reference table covers the requested conditions."""


class ThresholdSource(ABC):
    """Reference lookup collaborator."""

    @abstractmethod
    def compute_thresholds(
        self,
        fluid_type: FluidType,
        fluid_percentage: float,
        precipitation: str,
        temperature: float,
        unit: TemperatureUnit,
        data_source: DataSource | None = None,
    ) -> ThresholdSet:
        """Look up the thresholds for the given conditions.

        Raises:
            NoApplicableTable: If the conditions are not covered.
        """
        ...

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Human-readable name of the reference data."""
        ...
