"""Economies-of-scale size adjustment for buildings."""

from __future__ import annotations

import math

from assessing.core.types import CurveType
from assessing.reference.models import EconomyOfScaleCurve


def size_factor(effective_area: float, curve: EconomyOfScaleCurve) -> float:
    """Return the size adjustment factor for ``effective_area``.

    Areas at or below the smallest size get the smallest factor, areas at or
    above the largest size get the largest factor. In between, the factor
    moves toward 1.0 at the median size along the configured curve.
    """
    if effective_area <= curve.smallest_size:
        return curve.smallest_factor
    if effective_area >= curve.largest_size:
        return curve.largest_factor

    if curve.curve_type == CurveType.POWER:
        return _power(effective_area, curve)

    steepness = curve.curve_steepness if curve.curve_type == CurveType.EXPONENTIAL else 1.0
    if effective_area < curve.median_size:
        position = (effective_area - curve.smallest_size) / (curve.median_size - curve.smallest_size)
        return curve.smallest_factor + position**steepness * (1.0 - curve.smallest_factor)
    position = (effective_area - curve.median_size) / (curve.largest_size - curve.median_size)
    return 1.0 + position**steepness * (curve.largest_factor - 1.0)


def _power(effective_area: float, curve: EconomyOfScaleCurve) -> float:
    # factor = (area / median) ** exponent, with the exponent chosen so the
    # curve passes through the end factor at the end size.
    size_ratio = effective_area / curve.median_size
    if effective_area < curve.median_size:
        target_ratio = curve.smallest_size / curve.median_size
        target_factor = curve.smallest_factor
    else:
        target_ratio = curve.largest_size / curve.median_size
        target_factor = curve.largest_factor
    if target_ratio <= 0 or target_ratio == 1 or target_factor <= 0:
        return 1.0
    exponent = math.log(target_factor) / math.log(target_ratio) * curve.curve_steepness
    return size_ratio**exponent
