"""
Numeric Utilities
curation/scoring/utils.py

Small float helpers shared by the scorer, the batch normalizer and the
tournament ranker.
"""

import math
from typing import Sequence

# Standard deviations below this are treated as a degenerate (constant) dimension.
STD_EPSILON = 1e-9


def clamp(value: float, min_val: float = 0.0, max_val: float = 100.0) -> float:
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean. Returns 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_std_dev(values: Sequence[float], mu: float) -> float:
    """
    Population standard deviation around a precomputed mean.

    Formula: sqrt(Σ(value_i - mean)² / N)
    """
    if not values:
        return 0.0
    variance = sum((v - mu) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def safe_std_dev(std: float) -> float:
    """Substitute 1 for a zero standard deviation so z-scores collapse to 0."""
    if std < STD_EPSILON:
        return 1.0
    return std


def z_to_unit(z: float) -> float:
    """
    Map a z-score onto [0, 1] assuming scores rarely exceed ±3σ.

    Formula: clamp((z + 3) / 6, 0, 1)
    """
    return clamp((z + 3.0) / 6.0, 0.0, 1.0)


def is_finite_number(value) -> bool:
    """True for int/float values that are not NaN or infinite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
