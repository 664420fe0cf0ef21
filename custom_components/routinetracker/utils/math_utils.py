# File: utils/math_utils.py
"""Math and calculation utilities for RoutineTracker.

Pure Python math functions with ZERO Home Assistant dependencies.

Functions:
    - round_value: Consistent rounding of progress values
    - calculate_percentage: Progress percentage calculations
    - clamp: Bound a value to a range
    - is_finite_number: Numeric input check (rejects bool, NaN, infinity)
"""

from __future__ import annotations

import logging
import math
from typing import Any

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# Default float precision for progress values
DATA_FLOAT_PRECISION = 2


def round_value(value: float, precision: int = DATA_FLOAT_PRECISION) -> float:
    """Round a progress value to the configured precision.

    Examples:
        round_value(10.456) → 10.46
        round_value(10.0) → 10.0
    """
    return round(value, precision)


def calculate_percentage(
    current: float,
    target: float,
    precision: int = DATA_FLOAT_PRECISION,
) -> float:
    """Calculate progress percentage with proper rounding.

    Returns:
        Percentage with proper rounding, or 0.0 if target is 0 or negative.
        The result is not capped; callers clamp where they need to.

    Examples:
        calculate_percentage(65, 100) → 65.0
        calculate_percentage(1, 3) → 33.33
        calculate_percentage(5, 0) → 0.0
    """
    if target <= 0:
        return 0.0
    return round_value((current / target) * 100, precision)


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds.

    Examples:
        clamp(150, 0, 100) → 100
        clamp(-10, 0, 100) → 0
    """
    return max(min_val, min(value, max_val))


def is_finite_number(value: Any) -> bool:
    """Return True for int/float values that are not bool, NaN or infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
