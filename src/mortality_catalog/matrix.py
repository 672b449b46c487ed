"""
mortality_catalog/matrix.py - Rate Matrix Derivation

Select-and-ultimate tables carry a duration axis next to attained age. This
module pivots a payload's rate entries into an age × duration matrix:

    ages      = sorted unique ages of all entries
    durations = sorted unique non-null durations
    values[age][duration] = rate | None

A pair with no entry is absent from values; a pair whose entry has no rate
maps to None. Without any numeric duration there is no matrix and callers
fall back to the list view.

The matrix is rebuilt on every render and never stored.

License: MIT
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .models import Number, TablePayload

PLACEHOLDER = "—"
RATE_DECIMALS = 6

_MISSING = object()


# =============================================================================
# FORMATTING
# =============================================================================

def format_number(value: Union[int, float]) -> str:
    """
    Render a number the way JavaScript's String(number) does.

    5.0 -> "5", 0.01 -> "0.01", 1e-05 -> "0.00001", 1e-07 -> "1e-7"
    """
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    text = repr(value)
    if 'e' not in text:
        return text
    if 1e-6 <= abs(value) < 1e21:
        return np.format_float_positional(value, trim='-')
    mantissa, exponent = text.split('e')
    exp = int(exponent)
    return f"{mantissa}e{'+' if exp > 0 else '-'}{abs(exp)}"


def format_rate(value: Optional[float]) -> str:
    """Six-decimal rate, or the placeholder glyph when absent."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return PLACEHOLDER
    return f"{value:.{RATE_DECIMALS}f}"


def format_axis(value: Optional[Number]) -> str:
    if value is None:
        return PLACEHOLDER
    return format_number(value)


# =============================================================================
# RATE MATRIX
# =============================================================================

@dataclass
class RateMatrix:
    """Age × duration view of one payload."""
    ages: List[Number]
    durations: List[Number]
    values: Dict[Number, Dict[Number, Optional[float]]]

    def get(self, age: Number, duration: Number, default=None) -> Optional[float]:
        return self.values.get(age, {}).get(duration, default)

    def has_entry(self, age: Number, duration: Number) -> bool:
        return duration in self.values.get(age, {})

    def cell_text(self, age: Number, duration: Number) -> str:
        value = self.values.get(age, {}).get(duration, _MISSING)
        if value is _MISSING or value is None:
            return PLACEHOLDER
        return format_rate(value)

    @property
    def shape(self):
        return len(self.ages), len(self.durations)

    def to_array(self) -> np.ndarray:
        """Dense float matrix; missing and null cells are NaN."""
        grid = np.full(self.shape, np.nan, dtype=np.float64)
        for i, age in enumerate(self.ages):
            row = self.values.get(age, {})
            for j, duration in enumerate(self.durations):
                value = row.get(duration)
                if value is not None:
                    grid[i, j] = value
        return grid

    def to_display_frame(self) -> pd.DataFrame:
        """Formatted cells ready for rendering."""
        rows = [[self.cell_text(age, dur) for dur in self.durations] for age in self.ages]
        return pd.DataFrame(
            rows,
            index=pd.Index([format_number(a) for a in self.ages], name='Age'),
            columns=[f"Dur {format_number(d)}" for d in self.durations],
        )


def table_has_duration(payload: Optional[TablePayload]) -> bool:
    """True when the payload has at least one numeric duration."""
    if payload is None or not payload.rates:
        return False
    return payload.has_duration()


def build_rate_matrix(payload: Optional[TablePayload]) -> Optional[RateMatrix]:
    """
    Pivot a payload into a RateMatrix.

    Returns:
        None when no entry carries a numeric duration
    """
    rates = (payload.rates or []) if payload is not None else []

    durations = sorted({entry.duration for entry in rates if entry.duration is not None})
    if not durations:
        return None

    ages = sorted({entry.age for entry in rates})
    values: Dict[Number, Dict[Number, Optional[float]]] = {}
    for entry in rates:
        if entry.duration is None:
            continue
        values.setdefault(entry.age, {})[entry.duration] = entry.rate

    return RateMatrix(ages=ages, durations=durations, values=values)


def rate_list_frame(payload: Optional[TablePayload]) -> pd.DataFrame:
    """
    Formatted list view: Age, Duration (only with a duration axis), Rate.
    """
    rates = (payload.rates or []) if payload is not None else []
    include_duration = table_has_duration(payload)

    data = {'Age': [format_number(entry.age) for entry in rates]}
    if include_duration:
        data['Duration'] = [format_axis(entry.duration) for entry in rates]
    data['Rate'] = [format_rate(entry.rate) for entry in rates]
    return pd.DataFrame(data)
