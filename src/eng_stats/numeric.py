"""Numeric helpers shared by the calculators."""

import math
from typing import Iterable

import numpy as np


def round_to_tenth(value: float) -> float:
    """Round half up to one decimal place (2.25 -> 2.3, -2.25 -> -2.2)."""
    return math.floor(value * 10 + 0.5) / 10


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean as a plain float; 0.0 for an empty input."""
    values_array = np.array(list(values), dtype=float)
    if values_array.size == 0:
        return 0.0
    return float(np.mean(values_array))
