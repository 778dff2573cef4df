"""Pydantic models for assessing reference data."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator

from assessing.core.types import AttributeKind, BuildingClass, CurveType


class Zone(BaseModel):
    """A land-use district with its own land ladder."""

    id: str
    municipality_id: str
    name: str
    description: str = ""
    minimum_acreage: float | None = None
    minimum_frontage: float | None = None
    excess_land_cost_per_acre: float = 0.0
    base_view_value: float = 0.0
    is_active: bool = True


class LadderTier(BaseModel):
    """One (acreage -> value) breakpoint of a zone's land ladder."""

    zone_id: str
    acreage: float
    value: float
    frontage_rate: float | None = None
    order: int = 0


class AttributeFactor(BaseModel):
    """Neighborhood, site, driveway, road or topography factor.

    ``factor`` is a dimensionless multiplier (1.0 = no adjustment).
    """

    id: str
    kind: AttributeKind
    code: str = ""
    display_text: str = ""
    factor: float = 1.0
    is_active: bool = True


class ViewAttribute(BaseModel):
    """Subject, width, distance or depth factor for views."""

    id: str
    attribute_type: str
    display_text: str = ""
    factor: float = 1.0
    is_active: bool = True


class WaterfrontAttribute(BaseModel):
    """Access, topography or location factor for waterfronts."""

    id: str
    attribute_type: str
    display_text: str = ""
    factor: float = 1.0
    is_active: bool = True


class CurrentUseCategory(BaseModel):
    """A reduced-tax land-use category with a per-acre rate band."""

    code: str
    display_text: str = ""
    min_rate: float
    max_rate: float


class AcreageDiscountSettings(BaseModel):
    """Land economies of scale applied to excess acreage."""

    minimum_qualifying_acreage: float = 10.0
    maximum_qualifying_acreage: float = 200.0
    maximum_discount_percentage: float = 75.0

    def discount_percentage(self, acreage: float) -> float:
        """Discount percentage (0-100) for the given acreage."""
        if acreage < self.minimum_qualifying_acreage:
            return 0.0
        if acreage >= self.maximum_qualifying_acreage:
            return self.maximum_discount_percentage
        span = self.maximum_qualifying_acreage - self.minimum_qualifying_acreage
        if span <= 0:
            return self.maximum_discount_percentage
        ratio = (acreage - self.minimum_qualifying_acreage) / span
        return round(ratio * self.maximum_discount_percentage, 2)


class BuildingCode(BaseModel):
    """Base building type with its rate and depreciation percentage."""

    id: str
    code: str
    description: str = ""
    rate: float | None = None
    depreciation: float | None = None
    building_class: BuildingClass = BuildingClass.RESIDENTIAL


class BuildingFeatureCode(BaseModel):
    """Point-table entry for a building feature (walls, roof, heating, ...)."""

    id: str
    feature_type: str
    display_text: str = ""
    points: float = 0.0
    factor: float = 1.0
    is_active: bool = True


# ---------------------------------------------------------------------------
# Calculation config
# ---------------------------------------------------------------------------


class BedroomBathConfig(BaseModel):
    base: float = 5.0
    per_bedroom: float = 3.0
    per_full_bath: float = 2.0
    per_half_bath: float = 0.8


class RatioAdjustment(BaseModel):
    threshold: float
    factor: float


class RatioAdjustments(BaseModel):
    """Bath-equivalent/bedroom ratio bands, checked luxury, good, poor."""

    luxury: RatioAdjustment = Field(
        default_factory=lambda: RatioAdjustment(threshold=1.0, factor=1.10)
    )
    good: RatioAdjustment = Field(
        default_factory=lambda: RatioAdjustment(threshold=0.75, factor=1.05)
    )
    poor: RatioAdjustment = Field(
        default_factory=lambda: RatioAdjustment(threshold=0.5, factor=0.95)
    )


class SpecialAdjustment(BaseModel):
    """Multiplier for an exact bedroom / half-bath combination."""

    name: str
    bedrooms: int
    half_baths: int
    factor: float


def _default_special_adjustments() -> list[SpecialAdjustment]:
    return [
        SpecialAdjustment(name="three_bedroom_no_half_bath", bedrooms=3, half_baths=0, factor=0.97),
        SpecialAdjustment(name="two_bedroom_one_half_bath", bedrooms=2, half_baths=1, factor=1.03),
    ]


class MiscellaneousPoints(BaseModel):
    air_conditioning_points_per_10_percent: float = 1.0
    generator_points: float = 5.0
    points_per_extra_kitchen: float = 1.0


class EconomyOfScaleCurve(BaseModel):
    """Size adjustment curve for one building class."""

    median_size: float
    smallest_size: float
    smallest_factor: float = Field(gt=0)
    largest_size: float
    largest_factor: float = Field(gt=0)
    curve_type: CurveType = CurveType.LINEAR
    curve_steepness: float = Field(default=1.0, gt=0)

    @model_validator(mode="after")
    def _check_sizes(self) -> EconomyOfScaleCurve:
        if not 0 < self.smallest_size <= self.median_size <= self.largest_size:
            raise ValueError(
                "economies-of-scale sizes must satisfy "
                "0 < smallest_size <= median_size <= largest_size, got "
                f"{self.smallest_size}, {self.median_size}, {self.largest_size}"
            )
        return self


def _default_curves() -> dict[BuildingClass, EconomyOfScaleCurve]:
    return {
        BuildingClass.RESIDENTIAL: EconomyOfScaleCurve(
            median_size=1800, smallest_size=100, smallest_factor=3.0,
            largest_size=15000, largest_factor=0.75,
        ),
        BuildingClass.COMMERCIAL: EconomyOfScaleCurve(
            median_size=5000, smallest_size=500, smallest_factor=2.5,
            largest_size=50000, largest_factor=0.8,
        ),
        BuildingClass.INDUSTRIAL: EconomyOfScaleCurve(
            median_size=10000, smallest_size=1000, smallest_factor=2.0,
            largest_size=100000, largest_factor=0.85,
        ),
        BuildingClass.MANUFACTURED: EconomyOfScaleCurve(
            median_size=1200, smallest_size=50, smallest_factor=4.0,
            largest_size=3000, largest_factor=0.7,
        ),
    }


def _default_condition_factors() -> dict[str, float]:
    return {
        "excellent": 1.0,
        "very good": 1.5,
        "good": 2.0,
        "average": 2.5,
        "fair": 3.0,
        "poor": 3.5,
        "very poor": 4.0,
    }


class CalculationConfig(BaseModel):
    """Per-municipality, per-year building calculation parameters."""

    municipality_id: str
    effective_year: int
    base_rate: float = 100.0
    point_multiplier: float = 1.0
    base_depreciation_rate: float = 1.0
    max_normal_depreciation: float = 0.8
    max_total_depreciation: float = 1.0
    default_condition: str = "average"
    bedroom_bath: BedroomBathConfig = Field(default_factory=BedroomBathConfig)
    ratio_adjustments: RatioAdjustments = Field(default_factory=RatioAdjustments)
    special_adjustments: list[SpecialAdjustment] = Field(
        default_factory=_default_special_adjustments
    )
    miscellaneous: MiscellaneousPoints = Field(default_factory=MiscellaneousPoints)
    economies_of_scale: dict[BuildingClass, EconomyOfScaleCurve] = Field(
        default_factory=_default_curves
    )
    condition_factors: dict[str, float] = Field(default_factory=_default_condition_factors)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
