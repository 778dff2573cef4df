"""Pydantic models for recalculation jobs."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from assessing.core.types import JobStatus


class RecalculationOptions(BaseModel):
    batch_size: int | None = None
    only_missing: bool = False
    force_clear: bool = False
    include_buildings: bool = True
    rebuild_parcels: bool = True
    save: bool = True


class RecordError(BaseModel):
    record_id: str
    property_id: str
    card_number: int
    error: str


class RecalculationSummary(BaseModel):
    """Final counters of a recalculation job."""

    job_id: str
    municipality_id: str
    effective_year: int
    status: JobStatus
    total: int = 0
    processed: int = 0
    updated: int = 0
    errors: int = 0
    error_details: list[RecordError] = Field(default_factory=list)
    buildings_processed: int = 0
    buildings_updated: int = 0
    parcels_rebuilt: int = 0
    records_created: int = 0
    zone_adjustments: int = 0
    excess_acreage_created: int = 0
    details: list[dict[str, Any]] = Field(default_factory=list)
    duration_seconds: float = 0.0
    rate: float = 0.0
    message: str = ""


class RecalculationJob(BaseModel):
    """Live progress of one orchestrator run."""

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: str = "all"
    municipality_id: str
    effective_year: int
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0
    total: int = 0
    processed: int = 0
    updated: int = 0
    errors_count: int = 0
    errors: list[RecordError] = Field(default_factory=list)
    buildings_processed: int = 0
    buildings_updated: int = 0
    parcels_rebuilt: int = 0
    records_created: int = 0
    zone_adjustments: int = 0
    excess_acreage_created: int = 0
    details: list[dict[str, Any]] = Field(default_factory=list)
    rate: float = 0.0
    eta_seconds: float | None = None
    error: str | None = None
    cancel_requested: bool = False
    started_at: datetime | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class Discrepancy(BaseModel):
    record_id: str
    property_id: str
    card_number: int
    stored_value: float
    recalculated_value: float
    difference: float


class ValidationReport(BaseModel):
    """Stored vs. recomputed values for a sample of records."""

    municipality_id: str
    effective_year: int
    sample_size: int
    checked: int = 0
    discrepancies: list[Discrepancy] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies
