"""Core shared types for the assessing engine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class SizeUnit(StrEnum):
    """Measurement unit of a land line."""

    ACRES = "AC"
    FRONTAGE = "FF"


class BuildingClass(StrEnum):
    """Building class used to pick an economies-of-scale curve."""

    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    MANUFACTURED = "manufactured"


class CurveType(StrEnum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    POWER = "power"


class ChangeType(StrEnum):
    """Kind of reference-data change that triggers a selective recalculation."""

    ZONE = "zone"
    NEIGHBORHOOD = "neighborhood"
    CURRENT_USE = "current_use"
    TAXATION_CATEGORY = "taxation_category"
    VIEW_ATTRIBUTE = "view_attribute"
    FILTER = "filter"


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CalculationTrigger(StrEnum):
    """What caused a parcel rollup to be rebuilt."""

    BUILDING_UPDATE = "building_update"
    LAND_UPDATE = "land_update"
    FEATURE_UPDATE = "feature_update"
    MANUAL_RECALC = "manual_recalc"
    SKETCH_UPDATE = "sketch_update"
    INITIAL_CALCULATION = "initial_calculation"
    CARD_ADDED = "card_added"
    CARD_REMOVED = "card_removed"
    IMPORT = "import"
    MASS_RECALCULATION = "mass_recalculation"


class AttributeKind(StrEnum):
    """Kinds of land attribute factor tables."""

    NEIGHBORHOOD = "neighborhood"
    SITE = "site"
    DRIVEWAY = "driveway"
    ROAD = "road"
    TOPOGRAPHY = "topography"


class AuditEvent(BaseModel):
    """Immutable audit log entry."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor: str
    action: str
    resource: str
    municipality_id: str | None = None
    effective_year: int | None = None
    details: dict[str, Any] = Field(default_factory=dict)
