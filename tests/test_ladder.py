"""Tests for land ladder interpolation and rounding."""

from __future__ import annotations

import pytest

from assessing.core.rounding import round_to_nearest_hundred
from assessing.land.ladder import frontage_rate, interpolate
from assessing.reference.models import LadderTier


@pytest.fixture
def tiers() -> list[LadderTier]:
    return [
        LadderTier(zone_id="R1", acreage=1.0, value=20000, frontage_rate=200),
        LadderTier(zone_id="R1", acreage=5.0, value=60000),
    ]


class TestInterpolate:
    def test_empty_ladder_is_zero(self):
        assert interpolate([], 3.0) == 0.0

    def test_exact_tier_values(self, tiers):
        assert interpolate(tiers, 1.0) == 20000
        assert interpolate(tiers, 5.0) == 60000

    @pytest.mark.parametrize("acreage,expected", [(2.0, 30000), (3.0, 40000), (4.0, 50000)])
    def test_linear_between_tiers(self, tiers, acreage, expected):
        assert interpolate(tiers, acreage) == pytest.approx(expected)

    def test_clamps_below_smallest_tier(self, tiers):
        assert interpolate(tiers, 0.25) == 20000

    def test_clamps_above_largest_tier(self, tiers):
        assert interpolate(tiers, 40.0) == 60000

    def test_single_tier(self):
        only = [LadderTier(zone_id="R1", acreage=2.0, value=30000)]
        assert interpolate(only, 0.5) == 30000
        assert interpolate(only, 9.0) == 30000

    def test_monotonic(self):
        ladder = [
            LadderTier(zone_id="R1", acreage=0.5, value=15000),
            LadderTier(zone_id="R1", acreage=1.0, value=25000),
            LadderTier(zone_id="R1", acreage=3.0, value=40000),
            LadderTier(zone_id="R1", acreage=10.0, value=70000),
        ]
        values = [interpolate(ladder, a / 4) for a in range(0, 60)]
        assert values == sorted(values)

    def test_multi_segment(self):
        ladder = [
            LadderTier(zone_id="R1", acreage=1.0, value=10000),
            LadderTier(zone_id="R1", acreage=2.0, value=30000),
            LadderTier(zone_id="R1", acreage=4.0, value=40000),
        ]
        assert interpolate(ladder, 1.5) == pytest.approx(20000)
        assert interpolate(ladder, 3.0) == pytest.approx(35000)


class TestFrontageRate:
    def test_uses_first_tier_frontage_rate(self, tiers):
        assert frontage_rate(tiers) == 200

    def test_falls_back_to_first_tier_value(self):
        ladder = [LadderTier(zone_id="R1", acreage=1.0, value=250)]
        assert frontage_rate(ladder) == 250

    def test_empty(self):
        assert frontage_rate([]) == 0.0


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, 0),
            (49.99, 0),
            (50, 100),
            (149.99, 100),
            (150, 200),
            (44000, 44000),
            (34353, 34400),
            (-150, -200),
            (-149, -100),
        ],
    )
    def test_half_away_from_zero(self, value, expected):
        assert round_to_nearest_hundred(value) == expected
