"""Tests for the building calculator and its helpers."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from assessing.building.area import SketchAreaStore, effective_area
from assessing.building.calculator import (
    BuildingCalculator,
    air_conditioning_points,
    bedroom_bath_points,
    building_age,
    percentage_fraction,
)
from assessing.building.economies import size_factor
from assessing.building.models import (
    BuildingAssessment,
    DepreciationEntry,
    DepreciationInput,
    SketchArea,
)
from assessing.core.types import BuildingClass, CurveType
from assessing.reference.context import CalculationContext
from assessing.reference.models import (
    BuildingCode,
    BuildingFeatureCode,
    CalculationConfig,
    EconomyOfScaleCurve,
)
from tests.conftest import MUNI, YEAR


def _config(**overrides) -> CalculationConfig:
    return CalculationConfig(municipality_id=MUNI, effective_year=YEAR, **overrides)


def _calculator(config: CalculationConfig | None = None) -> BuildingCalculator:
    context = CalculationContext.from_reference(
        MUNI,
        YEAR,
        config or _config(),
        building_codes=[
            BuildingCode(id="BC-R", code="R1", rate=120, depreciation=1.5),
            BuildingCode(
                id="BC-C", code="C1", rate=None, building_class=BuildingClass.COMMERCIAL
            ),
        ],
        feature_codes=[
            BuildingFeatureCode(id="EW-VINYL", feature_type="exterior_wall", points=10),
            BuildingFeatureCode(id="EW-BRICK", feature_type="exterior_wall", points=20),
            BuildingFeatureCode(id="ROOF-GABLE", feature_type="roof_style", points=4),
            BuildingFeatureCode(id="ROOF-SLATE", feature_type="roof_cover", points=6),
            BuildingFeatureCode(
                id="EW-OLD", feature_type="exterior_wall", points=99, is_active=False
            ),
            BuildingFeatureCode(
                id="Q-GOOD", feature_type="quality_grade", display_text="Good", factor=1.2
            ),
            BuildingFeatureCode(
                id="SH-2", feature_type="story_height", display_text="Two Story", factor=0.9
            ),
        ],
    )
    return BuildingCalculator(context)


def _building(**fields) -> BuildingAssessment:
    fields.setdefault("effective_area", 1800)
    return BuildingAssessment(
        municipality_id=MUNI, property_id="P1", effective_year=YEAR, **fields
    )


class TestBedroomBath:
    def test_formula_without_ratio_band(self):
        # 3 bed, 2 full: ratio 0.667 falls between poor and good
        detail = bedroom_bath_points(3, 2, 0, _config())
        assert detail.base_points == pytest.approx(5 + 9 + 4)
        assert detail.ratio_category is None
        assert detail.special_adjustment == "three_bedroom_no_half_bath"
        assert detail.adjusted == pytest.approx(18 * 0.97)

    def test_luxury_ratio(self):
        detail = bedroom_bath_points(2, 2, 1, _config())
        assert detail.bath_equivalent == 2.5
        assert detail.ratio_category == "luxury"
        assert detail.special_adjustment == "two_bedroom_one_half_bath"
        assert detail.adjusted == pytest.approx(round((5 + 6 + 4 + 0.8) * 1.10 * 1.03, 2))

    def test_poor_ratio(self):
        detail = bedroom_bath_points(4, 1, 0, _config())
        assert detail.ratio_category == "poor"
        assert detail.ratio_factor == 0.95

    def test_no_bedrooms_has_no_ratio(self):
        detail = bedroom_bath_points(0, 1, 0, _config())
        assert detail.ratio is None
        assert detail.adjusted == pytest.approx(7)


class TestAirConditioning:
    @pytest.mark.parametrize(
        "coverage,expected",
        [(None, 0), (0, 0), (0.55, 5), (1.0, 10), (55, 5), (100, 10), (9.9, 0), (250, 10)],
    )
    def test_whole_ten_percent_steps(self, coverage, expected):
        assert air_conditioning_points(coverage, 1.0) == expected

    def test_scaled_by_points_per_step(self):
        assert air_conditioning_points(0.3, 2.5) == 7.5


class TestDepreciationHelpers:
    @pytest.mark.parametrize(
        "value,expected", [(None, 0), (0.25, 0.25), (25, 0.25), (150, 1.0), (-5, 0.0)]
    )
    def test_percentage_fraction(self, value, expected):
        assert percentage_fraction(value) == pytest.approx(expected)

    def test_age_from_year_built(self):
        assert building_age(_building(year_built=2000)) == 25
        assert building_age(_building(year_built=2030)) == 0
        assert building_age(_building(age=12)) == 12
        assert building_age(_building()) == 0


class TestEconomiesOfScale:
    @pytest.fixture
    def curve(self) -> EconomyOfScaleCurve:
        return EconomyOfScaleCurve(
            median_size=1800, smallest_size=100, smallest_factor=3.0,
            largest_size=15000, largest_factor=0.75,
        )

    def test_median_is_one(self, curve):
        assert size_factor(1800, curve) == pytest.approx(1.0)

    def test_clamped_at_ends(self, curve):
        assert size_factor(50, curve) == 3.0
        assert size_factor(20000, curve) == 0.75

    def test_linear_midpoints(self, curve):
        assert size_factor(950, curve) == pytest.approx(2.0)
        assert size_factor(8400, curve) == pytest.approx(0.875)

    def test_monotonic_decreasing(self, curve):
        factors = [size_factor(a, curve) for a in range(100, 15001, 250)]
        assert factors == sorted(factors, reverse=True)

    def test_power_curve_passes_through_end_points(self, curve):
        power = curve.model_copy(update={"curve_type": CurveType.POWER})
        assert size_factor(1800, power) == pytest.approx(1.0)
        assert size_factor(101, power) == pytest.approx(3.0, rel=0.01)
        assert size_factor(14999, power) == pytest.approx(0.75, rel=0.01)

    def test_exponential_steepness(self, curve):
        steep = curve.model_copy(update={"curve_type": CurveType.EXPONENTIAL, "curve_steepness": 2.0})
        # position 0.5 squared
        assert size_factor(950, steep) == pytest.approx(3.0 + 0.25 * (1.0 - 3.0))

    @pytest.mark.parametrize(
        "sizes",
        [
            {"smallest_size": 0, "median_size": 1800, "largest_size": 15000},
            {"smallest_size": 2000, "median_size": 1800, "largest_size": 15000},
            {"smallest_size": 100, "median_size": 20000, "largest_size": 15000},
        ],
    )
    def test_misordered_sizes_rejected(self, curve, sizes):
        with pytest.raises(ValidationError):
            EconomyOfScaleCurve(**{**curve.model_dump(), **sizes})

    def test_non_positive_factor_rejected(self, curve):
        with pytest.raises(ValidationError):
            EconomyOfScaleCurve(**{**curve.model_dump(), "largest_factor": 0})

    def test_collapsed_lower_segment(self, curve):
        flat = EconomyOfScaleCurve(**{**curve.model_dump(), "smallest_size": 1800})
        assert size_factor(1800, flat) == 3.0
        assert size_factor(1801, flat) == pytest.approx(1.0, rel=1e-3)


class TestBuildingCalculator:
    def test_base_rate_from_building_code(self):
        calc = _calculator().calculate(_building(base_type="BC-R"))
        assert calc.bedroom_bath_rate == pytest.approx(5)
        assert calc.base_rate == pytest.approx(5 + 120)
        assert calc.size_adjustment_factor == pytest.approx(1.0)
        assert calc.replacement_cost_new == pytest.approx(125 * 1800)
        assert calc.building_value == pytest.approx(125 * 1800)

    def test_base_type_resolves_by_code_string(self):
        calc = _calculator().calculate(_building(base_type="R1"))
        assert calc.base_rate == pytest.approx(125)

    def test_unknown_base_type_uses_configured_rate(self):
        calc = _calculator().calculate(_building(base_type="NOPE"))
        assert calc.base_rate == pytest.approx(5 + 100)
        assert any("NOPE" in w for w in calc.warnings)

    def test_feature_points_and_averaging(self):
        building = _building(
            exterior_wall_1="EW-VINYL",
            exterior_wall_2="EW-BRICK",
            roof_style="ROOF-GABLE",
            roof_cover="ROOF-SLATE",
            generator=True,
            extra_kitchen=2,
            air_conditioning=0.5,
        )
        calc = _calculator().calculate(building)
        assert calc.exterior_wall_points == 15
        assert calc.roof_points == 10
        assert calc.generator_points == 5
        assert calc.extra_kitchen_points == 2
        assert calc.air_conditioning_points == 5
        assert calc.total_feature_points == pytest.approx(15 + 10 + 5 + 2 + 5 + 5)

    def test_inactive_or_mismatched_codes_score_zero(self):
        calc = _calculator().calculate(
            _building(exterior_wall_1="EW-OLD", roof_style="EW-VINYL")
        )
        assert calc.exterior_wall_points == 0
        assert calc.roof_points == 0
        assert len(calc.warnings) == 2

    def test_quality_and_story_height_factors(self):
        calc = _calculator().calculate(
            _building(quality_grade="Good", story_height="SH-2")
        )
        assert calc.quality_adjustment_factor == 1.2
        assert calc.story_height_factor == 0.9
        assert calc.adjusted_base_rate == pytest.approx(105 * 1.2 * 0.9)

    def test_commercial_curve_for_commercial_code(self):
        calc = _calculator().calculate(_building(base_type="BC-C", effective_area=5000))
        assert calc.size_adjustment_factor == pytest.approx(1.0)

    def test_zero_area_has_zero_value(self):
        calc = _calculator().calculate(_building(effective_area=0))
        assert calc.replacement_cost_new == 0
        assert calc.building_value == 0
        assert calc.size_adjustment_factor == 1.0

    def test_normal_depreciation_from_condition(self):
        calc = _calculator().calculate(
            _building(
                base_type="BC-R",
                year_built=2009,
                depreciation=DepreciationInput(normal=DepreciationEntry(description="Good")),
            )
        )
        assert calc.building_age == 16
        assert calc.base_depreciation_rate == 1.5
        assert calc.normal_depreciation == pytest.approx(math.sqrt(16) * 2.0 * 1.5 / 100)
        assert calc.building_value == pytest.approx(
            calc.replacement_cost_new * (1 - calc.normal_depreciation)
        )

    def test_normal_depreciation_capped(self):
        calc = _calculator(_config(base_depreciation_rate=50)).calculate(
            _building(year_built=1900)
        )
        assert calc.normal_depreciation == 0.8

    def test_manual_normal_depreciation(self):
        calc = _calculator().calculate(
            _building(
                year_built=1950,
                depreciation=DepreciationInput(normal=DepreciationEntry(percentage=10)),
            )
        )
        assert calc.normal_depreciation == pytest.approx(0.10)

    def test_total_depreciation_clamped(self):
        depreciation = DepreciationInput(
            normal=DepreciationEntry(percentage=60),
            physical=DepreciationEntry(percentage=30),
            functional=DepreciationEntry(percentage=20),
            external=DepreciationEntry(percentage=10),
        )
        calc = _calculator().calculate(_building(depreciation=depreciation))
        assert calc.total_depreciation == 1.0
        assert calc.building_value == 0

        capped = _calculator(_config(max_total_depreciation=0.9)).calculate(
            _building(depreciation=depreciation)
        )
        assert capped.total_depreciation == 0.9
        assert capped.building_value == pytest.approx(capped.replacement_cost_new * 0.1)

    def test_building_value_is_not_rounded(self):
        calc = _calculator().calculate(_building(effective_area=1234.5))
        assert calc.building_value == pytest.approx(
            calc.adjusted_base_rate * 1234.5
        )


class TestSketchArea:
    def test_weighted_sum(self):
        areas = [
            SketchArea(description_code="FFL", area=1000),
            SketchArea(description_code="BMU", area=800),
            SketchArea(description_code="XYZ", area=10),
        ]
        assert effective_area(areas, {"FFL": 1.0, "BMU": 0.25}) == pytest.approx(1210)

    def test_store_returns_none_without_sketch(self):
        store = SketchAreaStore({"FFL": 1.0})
        assert store.get_effective_area("P1", 1) is None
        store.set_areas("P1", 1, [SketchArea(description_code="FFL", area=640)])
        store.set_rate("FFL", 0.5)
        assert store.get_effective_area("P1", 1) == 320
