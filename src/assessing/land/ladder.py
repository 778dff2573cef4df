"""Land ladder interpolation."""

from __future__ import annotations

from assessing.reference.models import LadderTier


def interpolate(tiers: list[LadderTier], acreage: float) -> float:
    """Return the ladder value for ``acreage``.

    ``tiers`` must be sorted by acreage. Values are linearly interpolated
    between adjacent tiers and clamped to the end tiers outside the ladder.
    An empty ladder yields 0.
    """
    if not tiers:
        return 0.0
    if len(tiers) == 1 or acreage <= tiers[0].acreage:
        return tiers[0].value
    if acreage >= tiers[-1].acreage:
        return tiers[-1].value

    for lower, upper in zip(tiers, tiers[1:]):
        if lower.acreage <= acreage <= upper.acreage:
            span = upper.acreage - lower.acreage
            if span == 0:
                return upper.value
            ratio = (acreage - lower.acreage) / span
            return lower.value + ratio * (upper.value - lower.value)

    return tiers[-1].value


def frontage_rate(tiers: list[LadderTier]) -> float:
    """Per-foot frontage rate taken from the first tier."""
    if not tiers:
        return 0.0
    first = tiers[0]
    return first.frontage_rate if first.frontage_rate is not None else first.value
