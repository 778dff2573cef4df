"""Building value calculator.

Accumulates feature points into a base rate, applies the economies-of-scale
size factor, multiplies by effective area for replacement cost new and then
subtracts depreciation.
"""

from __future__ import annotations

import logging
import math

from assessing.building.economies import size_factor
from assessing.building.models import (
    BedroomBathDetail,
    BuildingAssessment,
    BuildingCalculation,
)
from assessing.core.types import BuildingClass
from assessing.reference.context import CalculationContext
from assessing.reference.models import BuildingCode, CalculationConfig

logger = logging.getLogger(__name__)


class BuildingCalculator:
    """Computes building values against one calculation context."""

    def __init__(self, context: CalculationContext) -> None:
        self._ctx = context

    @property
    def config(self) -> CalculationConfig:
        return self._ctx.calculation_config

    def calculate(self, building: BuildingAssessment) -> BuildingCalculation:
        calc = BuildingCalculation()
        self._feature_points(building, calc)

        code = self._ctx.building_code(building.base_type)
        if building.base_type and code is None:
            calc.warnings.append(f"unknown base type {building.base_type!r}")
            logger.warning(
                "No building code for base type %r on property %s; using configured base rate",
                building.base_type, building.property_id,
            )

        configured_rate = code.rate if code is not None and code.rate is not None else self.config.base_rate
        calc.base_rate = calc.total_feature_points * self.config.point_multiplier + configured_rate
        calc.quality_adjustment_factor = self._feature_factor("quality_grade", building.quality_grade)
        calc.story_height_factor = self._feature_factor("story_height", building.story_height)

        calc.effective_area = building.effective_area
        if building.effective_area > 0:
            calc.size_adjustment_factor = self._size_factor(code, building.effective_area)

        calc.adjusted_base_rate = (
            calc.base_rate
            * calc.story_height_factor
            * calc.quality_adjustment_factor
            * calc.size_adjustment_factor
        )
        calc.replacement_cost_new = calc.adjusted_base_rate * building.effective_area

        self._depreciation(building, code, calc)
        calc.building_value = max(0.0, calc.replacement_cost_new * (1 - calc.total_depreciation))
        return calc

    # ------------------------------------------------------------------
    # Feature points
    # ------------------------------------------------------------------

    def _feature_points(self, building: BuildingAssessment, calc: BuildingCalculation) -> None:
        calc.exterior_wall_points = self._averaged(
            "exterior_wall", building.exterior_wall_1, building.exterior_wall_2, calc
        )
        calc.interior_wall_points = self._averaged(
            "interior_wall", building.interior_wall_1, building.interior_wall_2, calc
        )
        calc.roof_points = self._points("roof_style", building.roof_style, calc) + self._points(
            "roof_cover", building.roof_cover, calc
        )
        calc.heating_points = self._points("heating_fuel", building.heating_fuel, calc) + self._points(
            "heating_type", building.heating_type, calc
        )
        calc.flooring_points = self._averaged(
            "flooring", building.flooring_1, building.flooring_2, calc
        )
        calc.frame_points = self._points("frame", building.frame, calc)
        calc.ceiling_height_points = self._points("ceiling_height", building.ceiling_height, calc)

        misc = self.config.miscellaneous
        calc.air_conditioning_points = air_conditioning_points(
            building.air_conditioning, misc.air_conditioning_points_per_10_percent
        )
        calc.generator_points = misc.generator_points if building.generator else 0.0
        calc.extra_kitchen_points = max(building.extra_kitchen, 0) * misc.points_per_extra_kitchen

        detail = bedroom_bath_points(
            building.bedrooms, building.full_baths, building.half_baths, self.config
        )
        calc.bedroom_bath = detail
        calc.bedroom_bath_rate = detail.adjusted

        calc.total_feature_points = (
            calc.exterior_wall_points
            + calc.interior_wall_points
            + calc.roof_points
            + calc.heating_points
            + calc.flooring_points
            + calc.frame_points
            + calc.ceiling_height_points
            + calc.bedroom_bath_rate
            + calc.air_conditioning_points
            + calc.extra_kitchen_points
            + calc.generator_points
        )

    def _points(self, feature_type: str, feature_id: str | None, calc: BuildingCalculation) -> float:
        if not feature_id:
            return 0.0
        code = self._ctx.feature_code(feature_id)
        if code is None or not code.is_active or code.feature_type != feature_type:
            calc.warnings.append(f"unknown {feature_type} code {feature_id!r}")
            logger.warning("Unknown or inactive %s feature code %r; scoring 0", feature_type, feature_id)
            return 0.0
        return code.points

    def _averaged(
        self,
        feature_type: str,
        first: str | None,
        second: str | None,
        calc: BuildingCalculation,
    ) -> float:
        if first and second:
            return (self._points(feature_type, first, calc) + self._points(feature_type, second, calc)) / 2
        return self._points(feature_type, first or second, calc)

    def _feature_factor(self, feature_type: str, value: str | None) -> float:
        if not value:
            return 1.0
        for code in self._ctx.feature_codes.values():
            if code.feature_type != feature_type or not code.is_active:
                continue
            if code.id == value or code.display_text == value:
                return code.factor
        logger.warning("No %s factor for %r; using 1.0", feature_type, value)
        return 1.0

    def _size_factor(self, code: BuildingCode | None, area: float) -> float:
        building_class = code.building_class if code is not None else BuildingClass.RESIDENTIAL
        curve = self.config.economies_of_scale.get(building_class)
        if curve is None:
            logger.warning("No economies-of-scale curve for %s; using 1.0", building_class.value)
            return 1.0
        return size_factor(area, curve)

    # ------------------------------------------------------------------
    # Depreciation
    # ------------------------------------------------------------------

    def _depreciation(
        self,
        building: BuildingAssessment,
        code: BuildingCode | None,
        calc: BuildingCalculation,
    ) -> None:
        calc.building_age = building_age(building)
        calc.base_depreciation_rate = (
            code.depreciation
            if code is not None and code.depreciation is not None
            else self.config.base_depreciation_rate
        )

        normal = building.depreciation.normal
        if normal.percentage is not None:
            calc.normal_depreciation = percentage_fraction(normal.percentage)
        else:
            condition = (normal.description or self.config.default_condition).lower()
            factor = self.config.condition_factors.get(condition)
            if factor is None:
                logger.warning("Unknown condition %r; using %s", condition, self.config.default_condition)
                factor = self.config.condition_factors.get(self.config.default_condition, 2.5)
            calc.normal_depreciation = min(
                math.sqrt(calc.building_age) * factor * calc.base_depreciation_rate / 100,
                self.config.max_normal_depreciation,
            )

        calc.physical_depreciation = percentage_fraction(building.depreciation.physical.percentage)
        calc.functional_depreciation = percentage_fraction(building.depreciation.functional.percentage)
        calc.external_depreciation = percentage_fraction(building.depreciation.external.percentage)

        total = (
            calc.normal_depreciation
            + calc.physical_depreciation
            + calc.functional_depreciation
            + calc.external_depreciation
        )
        cap = min(max(self.config.max_total_depreciation, 0.0), 1.0)
        calc.total_depreciation = min(max(total, 0.0), cap)


def air_conditioning_points(coverage: float | None, points_per_10_percent: float) -> float:
    """Points for air-conditioned coverage, in whole 10% increments.

    Accepts either a fraction (0-1) or a percentage (0-100).
    """
    if not coverage or coverage <= 0:
        return 0.0
    percent = coverage * 100 if coverage <= 1 else coverage
    percent = min(percent, 100.0)
    return math.floor(round(percent, 6) / 10) * points_per_10_percent


def bedroom_bath_points(
    bedrooms: int, full_baths: int, half_baths: int, config: CalculationConfig
) -> BedroomBathDetail:
    formula = config.bedroom_bath
    base = (
        formula.base
        + formula.per_bedroom * bedrooms
        + formula.per_full_bath * full_baths
        + formula.per_half_bath * half_baths
    )
    bath_equivalent = full_baths + 0.5 * half_baths
    ratio = bath_equivalent / bedrooms if bedrooms > 0 else None

    ratio_category: str | None = None
    ratio_factor = 1.0
    if ratio is not None:
        bands = config.ratio_adjustments
        if ratio >= bands.luxury.threshold:
            ratio_category, ratio_factor = "luxury", bands.luxury.factor
        elif ratio >= bands.good.threshold:
            ratio_category, ratio_factor = "good", bands.good.factor
        elif ratio <= bands.poor.threshold:
            ratio_category, ratio_factor = "poor", bands.poor.factor

    special_name: str | None = None
    special_factor = 1.0
    for special in config.special_adjustments:
        if special.bedrooms == bedrooms and special.half_baths == half_baths:
            special_name, special_factor = special.name, special.factor
            break

    return BedroomBathDetail(
        bedrooms=bedrooms,
        full_baths=full_baths,
        half_baths=half_baths,
        bath_equivalent=bath_equivalent,
        ratio=ratio,
        base_points=base,
        ratio_category=ratio_category,
        ratio_factor=ratio_factor,
        special_adjustment=special_name,
        special_factor=special_factor,
        adjusted=round(base * ratio_factor * special_factor, 2),
    )


def building_age(building: BuildingAssessment) -> int:
    if building.year_built:
        return max(0, building.effective_year - building.year_built)
    return max(0, building.age or 0)


def percentage_fraction(value: float | None) -> float:
    """Normalize a depreciation entry to a 0-1 fraction; values above 1 are percents."""
    if value is None:
        return 0.0
    fraction = value / 100 if value > 1 else value
    return min(max(fraction, 0.0), 1.0)
