"""
Analysis engine for HCS (heat conduction) sample evaluation.

The temperature log is a single column sampled once per second. The row whose
value is closest to the operator's reference temperature is taken as t = 60 s,
and every other row is placed on the time axis relative to it.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

import numpy as np
import pandas as pd

from errors import AnchorNotFoundError


logger = logging.getLogger(__name__)


# Time axis
REFERENCE_TIME_S = 60
TARGET_TEMPERATURES = (100, 150, 180, 200)  # °C
SAMPLE_TIMES_S = (60, 120, 300, 600)  # seconds


class Availability(Enum):
    """Marker for a metric with no qualifying data point."""
    NOT_AVAILABLE = "N/A"

    def __str__(self):
        return self.value


NOT_AVAILABLE = Availability.NOT_AVAILABLE

Metric = Union[int, float, Availability]


@dataclass(frozen=True)
class ThermalMetrics:
    """Timing and temperature metrics relative to one anchor row."""
    # Time (s) to reach temperature
    time_to_100: Metric
    time_to_150: Metric
    time_to_180: Metric
    time_to_200: Metric

    # Temperature (°C) at elapsed time
    temp_at_60: Metric
    temp_at_120: Metric
    temp_at_300: Metric
    temp_at_600: Metric

    anchor_index: int = 0

    @property
    def times_to_reach(self) -> Tuple[Metric, ...]:
        return (self.time_to_100, self.time_to_150, self.time_to_180, self.time_to_200)

    @property
    def temps_at_time(self) -> Tuple[Metric, ...]:
        return (self.temp_at_60, self.temp_at_120, self.temp_at_300, self.temp_at_600)


@dataclass(frozen=True)
class CalculatedProperties:
    """Properties derived from the manual measurements."""
    weight_gsm: float  # g/m²
    density: float  # kg/m³


@dataclass(frozen=True)
class PhysicalInputs:
    """Measurements and conditions entered by the operator."""
    thickness: float  # mm
    weight_raw: float  # g
    width: float  # mm
    length: float  # mm
    heat_source_temp: str
    pressure: str
    evaluation_date: str  # YYYY-MM-DD
    remarks: str = ""

    def calculate(self) -> CalculatedProperties:
        return calculate_physical_properties(
            self.thickness, self.weight_raw, self.width, self.length
        )


def time_for_index(index: int, anchor_index: int) -> int:
    """Elapsed time (s) of a row, assuming 1 s between rows."""
    return REFERENCE_TIME_S + (index - anchor_index)


def index_for_time(seconds: int, anchor_index: int) -> int:
    """Row index holding the sample taken at `seconds`."""
    return anchor_index + (seconds - REFERENCE_TIME_S)


def find_anchor_index(column: pd.Series, reference_temp: float) -> int:
    """
    Find the row closest to the reference temperature.
    Ties resolve to the earliest row. Absent values never match.
    """
    values = column.to_numpy(dtype=float)
    present = ~np.isnan(values)

    if not present.any():
        raise AnchorNotFoundError("Could not find reference temperature in the data.")

    distance = np.where(present, np.abs(values - reference_temp), np.inf)
    # argmin returns the first occurrence of the minimum
    anchor = int(np.argmin(distance))
    logger.debug("Anchor row %d (value %s, reference %s)", anchor, values[anchor], reference_temp)
    return anchor


def find_time_for_temp(column: pd.Series, anchor_index: int, target_temp: float) -> Metric:
    """
    Time of the first row at or above `target_temp`.

    The scan starts at row 0, so rows logged before the anchor are eligible.
    """
    values = column.to_numpy(dtype=float)
    hits = np.flatnonzero(~np.isnan(values) & (values >= target_temp))
    if len(hits) == 0:
        return NOT_AVAILABLE
    return time_for_index(int(hits[0]), anchor_index)


def find_temp_at_time(column: pd.Series, anchor_index: int, seconds: int) -> Metric:
    """Temperature logged at `seconds`, without interpolation."""
    idx = index_for_time(seconds, anchor_index)
    if 0 <= idx < len(column):
        value = column.iloc[idx]
        if pd.notna(value):
            return float(value)
    return NOT_AVAILABLE


def process_thermal_data(column: pd.Series, reference_temp_at_60s: float) -> ThermalMetrics:
    """
    Synchronize the log on the reference temperature and extract all metrics.
    Raises AnchorNotFoundError when the column has no numeric value.
    """
    anchor = find_anchor_index(column, reference_temp_at_60s)

    times = [find_time_for_temp(column, anchor, t) for t in TARGET_TEMPERATURES]
    temps = [find_temp_at_time(column, anchor, s) for s in SAMPLE_TIMES_S]

    return ThermalMetrics(*times, *temps, anchor_index=anchor)


def elapsed_time_axis(column: pd.Series, anchor_index: int) -> pd.Series:
    """Elapsed time (s) for every row of the column."""
    return pd.Series(
        np.arange(len(column)) - anchor_index + REFERENCE_TIME_S,
        index=column.index,
        name='time',
    )


def _finite_ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    ratio = numerator / denominator
    return ratio if math.isfinite(ratio) else 0.0


def calculate_physical_properties(
    thickness_mm: float,
    weight_g: float,
    width_mm: float,
    length_mm: float
) -> CalculatedProperties:
    """
    Areal weight (g/m²) and density (kg/m³) of a rectangular sample.
    Both fall back to 0 when the area or volume is zero, or when the
    quotient does not fit in a float.
    """
    area_m2 = (width_mm * length_mm) / 1_000_000
    weight_gsm = _finite_ratio(weight_g, area_m2)

    mass_kg = weight_g / 1000
    thickness_m = thickness_mm / 1000
    volume_m3 = area_m2 * thickness_m
    density = _finite_ratio(mass_kg, volume_m3)

    return CalculatedProperties(weight_gsm=weight_gsm, density=density)


def format_metric(value: Metric, precision: int = 2, suffix: str = "") -> str:
    """Format a metric for display."""
    if value is NOT_AVAILABLE:
        return "N/A"
    return f"{value:.{precision}f}{suffix}"
