"""Pydantic models for parcel rollups."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from assessing.core.types import CalculationTrigger


class PropertyFeature(BaseModel):
    """An "other improvement" on a card (shed, pool, ...)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    municipality_id: str
    property_id: str
    card_number: int = 1
    description: str = ""
    calculated_value: float = 0.0
    is_active: bool = True


class CardAssessment(BaseModel):
    card_number: int
    land_value: float = 0.0
    building_value: float = 0.0
    improvements_value: float = 0.0
    card_total: float = 0.0


class LandAllocation(BaseModel):
    """Where a card's land value came from."""

    card_number: int
    land_value: float = 0.0
    view_value: float = 0.0
    waterfront_value: float = 0.0


class ParcelTotals(BaseModel):
    total_land_value: float = 0.0
    total_building_value: float = 0.0
    total_improvements_value: float = 0.0
    total_assessed_value: float = 0.0


class ParcelAssessment(BaseModel):
    """Parcel-level rollup of every card for one effective year."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    municipality_id: str
    property_id: str
    effective_year: int
    parcel_totals: ParcelTotals = Field(default_factory=ParcelTotals)
    card_assessments: list[CardAssessment] = Field(default_factory=list)
    land_allocation: list[LandAllocation] = Field(default_factory=list)
    total_cards_count: int = 0
    previous_total: float | None = None
    change_amount: float = 0.0
    change_percentage: float = 0.0
    calculation_trigger: CalculationTrigger = CalculationTrigger.MANUAL_RECALC
    calculation_duration_ms: float = 0.0
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
