# File: utils/__init__.py
"""Pure Python utilities for RoutineTracker.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Date/time parsing, timezone handling, day boundaries
    - math_utils: Rounding, percentages and numeric input checks
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]
