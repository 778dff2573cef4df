"""Pydantic models for building assessments."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class DepreciationEntry(BaseModel):
    """A manually entered depreciation percentage."""

    percentage: float | None = None
    description: str | None = None


class DepreciationInput(BaseModel):
    normal: DepreciationEntry = Field(default_factory=DepreciationEntry)
    physical: DepreciationEntry = Field(default_factory=DepreciationEntry)
    functional: DepreciationEntry = Field(default_factory=DepreciationEntry)
    external: DepreciationEntry = Field(default_factory=DepreciationEntry)


class SketchArea(BaseModel):
    """One sub-area of a building sketch."""

    description_code: str
    area: float


class BedroomBathDetail(BaseModel):
    bedrooms: int
    full_baths: int
    half_baths: int
    bath_equivalent: float
    ratio: float | None = None
    base_points: float
    ratio_category: str | None = None
    ratio_factor: float = 1.0
    special_adjustment: str | None = None
    special_factor: float = 1.0
    adjusted: float


class BuildingCalculation(BaseModel):
    """Every intermediate value of one building calculation."""

    exterior_wall_points: float = 0.0
    interior_wall_points: float = 0.0
    roof_points: float = 0.0
    heating_points: float = 0.0
    flooring_points: float = 0.0
    frame_points: float = 0.0
    ceiling_height_points: float = 0.0
    bedroom_bath_rate: float = 0.0
    bedroom_bath: BedroomBathDetail | None = None
    air_conditioning_points: float = 0.0
    extra_kitchen_points: float = 0.0
    generator_points: float = 0.0
    total_feature_points: float = 0.0
    base_rate: float = 0.0
    story_height_factor: float = 1.0
    quality_adjustment_factor: float = 1.0
    size_adjustment_factor: float = 1.0
    adjusted_base_rate: float = 0.0
    effective_area: float = 0.0
    replacement_cost_new: float = 0.0
    building_age: int = 0
    base_depreciation_rate: float = 0.0
    normal_depreciation: float = 0.0
    physical_depreciation: float = 0.0
    functional_depreciation: float = 0.0
    external_depreciation: float = 0.0
    total_depreciation: float = 0.0
    building_value: float = 0.0
    warnings: list[str] = Field(default_factory=list)


class BuildingAssessment(BaseModel):
    """A card's building valuation for one effective year."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    municipality_id: str
    property_id: str
    card_number: int = 1
    effective_year: int
    base_type: str | None = None
    quality_grade: str | None = None
    story_height: str | None = None
    exterior_wall_1: str | None = None
    exterior_wall_2: str | None = None
    interior_wall_1: str | None = None
    interior_wall_2: str | None = None
    roof_style: str | None = None
    roof_cover: str | None = None
    heating_fuel: str | None = None
    heating_type: str | None = None
    flooring_1: str | None = None
    flooring_2: str | None = None
    frame: str | None = None
    ceiling_height: str | None = None
    air_conditioning: float | None = None
    generator: bool = False
    extra_kitchen: int = 0
    bedrooms: int = 0
    full_baths: int = 0
    half_baths: int = 0
    year_built: int | None = None
    age: int | None = None
    effective_area: float = 0.0
    depreciation: DepreciationInput = Field(default_factory=DepreciationInput)
    calculation_details: BuildingCalculation | None = None
    building_value: float = 0.0
    last_calculated: datetime | None = None
    change_reason: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.property_id, self.card_number, self.effective_year)
