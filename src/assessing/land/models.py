"""Pydantic models for land assessments, views and waterfronts."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from assessing.core.types import SizeUnit


class LandLineValues(BaseModel):
    """Computed values for one land line. Kept at full precision."""

    base_rate: float = 0.0
    base_value: float = 0.0
    neighborhood_factor: float = 1.0
    site_factor: float = 1.0
    driveway_factor: float = 1.0
    road_factor: float = 1.0
    topography_factor: float = 1.0
    condition_factor: float = 1.0
    economy_of_scale_factor: float = 0.0
    market_value: float = 0.0
    current_use_value: float = 0.0
    current_use_credit: float = 0.0
    assessed_value: float = 0.0
    is_current_use: bool = False


class LandLine(BaseModel):
    """One land-use line of a card's land assessment."""

    line_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    land_use_type: str = "RES"
    size: float = 0.0
    size_unit: SizeUnit = SizeUnit.ACRES
    topography: str | None = None
    condition: float | None = None
    spi: float | None = None
    is_excess_acreage: bool = False
    notes: str = ""
    calculated: LandLineValues | None = None

    @property
    def acreage(self) -> float:
        return self.size if self.size_unit == SizeUnit.ACRES else 0.0

    @property
    def frontage(self) -> float:
        return self.size if self.size_unit == SizeUnit.FRONTAGE else 0.0


class LandTotals(BaseModel):
    """Card-level land rollup. Money fields are rounded to the nearest hundred."""

    total_acreage: float = 0.0
    total_frontage: float = 0.0
    land_market_value: float = 0.0
    land_current_use_value: float = 0.0
    land_current_use_credit: float = 0.0
    land_assessed_value: float = 0.0
    view_market_value: float = 0.0
    view_assessed_value: float = 0.0
    waterfront_market_value: float = 0.0
    waterfront_assessed_value: float = 0.0
    total_market_value: float = 0.0
    total_assessed_value: float = 0.0
    total_current_use_credit: float = 0.0
    has_current_use: bool = False


class LandAssessment(BaseModel):
    """A card's land valuation for one effective year."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    municipality_id: str
    property_id: str
    card_number: int = 1
    effective_year: int
    zone_id: str | None = None
    neighborhood_id: str | None = None
    site_conditions_id: str | None = None
    driveway_type_id: str | None = None
    road_type_id: str | None = None
    taxation_category: str | None = None
    land_use_lines: list[LandLine] = Field(default_factory=list)
    calculated_totals: LandTotals | None = None
    last_calculated: datetime | None = None
    change_reason: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.property_id, self.card_number, self.effective_year)


class PropertyView(BaseModel):
    """A view record attached to a card."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    municipality_id: str
    property_id: str
    card_number: int = 1
    subject_id: str | None = None
    width_id: str | None = None
    distance_id: str | None = None
    depth_id: str | None = None
    condition_factor: float = 1.0
    base_value: float | None = None
    current_use: bool = False
    is_active: bool = True

    @property
    def attribute_ids(self) -> list[str]:
        return [
            a for a in (self.subject_id, self.width_id, self.distance_id, self.depth_id) if a
        ]


class PropertyWaterfront(BaseModel):
    """A waterfront record attached to a card."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    municipality_id: str
    property_id: str
    card_number: int = 1
    water_body_id: str | None = None
    frontage: float = 0.0
    frontage_factor: float = 1.0
    access_id: str | None = None
    topography_id: str | None = None
    location_id: str | None = None
    condition: float = 100.0
    base_value: float = 0.0
    current_use: bool = False
    is_active: bool = True


class ViewValue(BaseModel):
    view_id: str
    market_value: float
    assessed_value: float


class WaterfrontValue(BaseModel):
    waterfront_id: str
    market_value: float
    assessed_value: float


class CardLandResult(BaseModel):
    """Output of a card-level land calculation."""

    lines: list[LandLine]
    views: list[ViewValue] = Field(default_factory=list)
    waterfronts: list[WaterfrontValue] = Field(default_factory=list)
    totals: LandTotals


class ZoneAdjustmentDetail(BaseModel):
    line_id: str
    original_acreage: float
    adjusted_acreage: float
    excess: float


class ZoneAdjustmentResult(BaseModel):
    """Outcome of clipping land lines to the zone minimum."""

    adjusted: bool = False
    adjustments: list[ZoneAdjustmentDetail] = Field(default_factory=list)
    excess_acreage: float = 0.0
    excess_acreage_created: bool = False
    lines: list[LandLine] = Field(default_factory=list)


class LandAssessmentFilter(BaseModel):
    """Selects land assessments for a recalculation run."""

    zone_id: str | None = None
    neighborhood_id: str | None = None
    land_use_type: str | None = None
    taxation_category: str | None = None
    property_ids: list[str] | None = None
    only_missing: bool = False

    def matches(self, assessment: LandAssessment) -> bool:
        if self.zone_id is not None and assessment.zone_id != self.zone_id:
            return False
        if self.neighborhood_id is not None and assessment.neighborhood_id != self.neighborhood_id:
            return False
        if (
            self.taxation_category is not None
            and assessment.taxation_category != self.taxation_category
        ):
            return False
        if self.property_ids is not None and assessment.property_id not in self.property_ids:
            return False
        if self.only_missing and assessment.last_calculated is not None:
            return False
        if self.land_use_type is not None and not any(
            line.land_use_type == self.land_use_type for line in assessment.land_use_lines
        ):
            return False
        return True
