"""Rounding helpers for assessed values."""

from __future__ import annotations

import math


def round_to_nearest_hundred(value: float) -> float:
    """Round half away from zero to the nearest $100."""
    if value < 0:
        return -round_to_nearest_hundred(-value)
    return float(math.floor(value / 100.0 + 0.5) * 100)
