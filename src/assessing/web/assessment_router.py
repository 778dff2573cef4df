"""Assessing API router: valuation, rollups, recalculation jobs, billing."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from assessing.billing.models import BillingPeriod, BillingValidation
from assessing.core.types import CalculationTrigger, ChangeType
from assessing.parcel.models import ParcelAssessment
from assessing.recalc.models import RecalculationJob, RecalculationOptions, ValidationReport
from assessing.valuation import ValuationService

router = APIRouter(prefix="/api/assessing")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CardCalculateRequest(BaseModel):
    """Edit (optional) and revalue one card."""

    property_id: str
    card_number: int = 1
    effective_year: int
    changes: dict[str, Any] = Field(default_factory=dict)


class AggregateRequest(BaseModel):
    effective_year: int
    trigger: CalculationTrigger = CalculationTrigger.MANUAL_RECALC


class RecalculateRequest(BaseModel):
    """Mass recalculation request.

    ``wait`` runs the job inline and returns its summary; otherwise the job
    is queued and its id returned for polling.
    """

    effective_year: int
    wait: bool = False
    options: RecalculationOptions | None = None


class RecalculateAffectedRequest(RecalculateRequest):
    change_type: str
    change_id: str | None = None


class LockYearRequest(BaseModel):
    actor: str


# ---------------------------------------------------------------------------
# Helper to get the service from app state
# ---------------------------------------------------------------------------


def _get_service(request: Request) -> ValuationService:
    service = getattr(request.app.state, "valuation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Valuation service not available")
    return service


def _change_type(value: str) -> ChangeType:
    try:
        return ChangeType(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown change type: {value!r}",
        )


def _accepted(job_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=202,
        content={"job_id": job_id, "status_url": f"/api/assessing/jobs/{job_id}"},
    )


# ---------------------------------------------------------------------------
# Single-record valuation
# ---------------------------------------------------------------------------


@router.post("/{municipality_id}/land/calculate")
async def calculate_land(municipality_id: str, body: CardCalculateRequest, request: Request) -> dict:
    service = _get_service(request)
    land, parcel = await service.calculate_land(
        municipality_id, body.property_id, body.card_number, body.effective_year, body.changes
    )
    return {
        "land_assessment": land.model_dump(mode="json"),
        "parcel": parcel.model_dump(mode="json"),
    }


@router.post("/{municipality_id}/building/calculate")
async def calculate_building(
    municipality_id: str, body: CardCalculateRequest, request: Request
) -> dict:
    service = _get_service(request)
    building, parcel = await service.calculate_building(
        municipality_id, body.property_id, body.card_number, body.effective_year, body.changes
    )
    return {
        "building_assessment": building.model_dump(mode="json"),
        "parcel": parcel.model_dump(mode="json"),
    }


@router.post("/{municipality_id}/parcels/{property_id}/aggregate", response_model=ParcelAssessment)
async def aggregate_parcel(
    municipality_id: str, property_id: str, body: AggregateRequest, request: Request
) -> ParcelAssessment:
    service = _get_service(request)
    return await service.aggregate_parcel(
        municipality_id, property_id, body.effective_year, trigger=body.trigger
    )


# ---------------------------------------------------------------------------
# Mass recalculation
# ---------------------------------------------------------------------------


@router.post("/{municipality_id}/recalculate")
async def recalculate_all(municipality_id: str, body: RecalculateRequest, request: Request):
    service = _get_service(request)
    if body.wait:
        summary = await service.recalculate_all(municipality_id, body.effective_year, body.options)
        return summary.model_dump(mode="json")
    job_id = await service.start_recalculate_all(municipality_id, body.effective_year, body.options)
    return _accepted(job_id)


@router.post("/{municipality_id}/recalculate-affected")
async def recalculate_affected(
    municipality_id: str, body: RecalculateAffectedRequest, request: Request
):
    service = _get_service(request)
    change_type = _change_type(body.change_type)
    if body.wait:
        summary = await service.recalculate_affected(
            municipality_id, change_type, body.change_id, body.effective_year, body.options
        )
        return summary.model_dump(mode="json")
    job_id = await service.start_recalculate_affected(
        municipality_id, change_type, body.change_id, body.effective_year, body.options
    )
    return _accepted(job_id)


@router.post("/{municipality_id}/recalculate-zone-adjustments")
async def recalculate_zone_adjustments(
    municipality_id: str, body: RecalculateRequest, request: Request
):
    service = _get_service(request)
    if body.wait:
        summary = await service.recalculate_with_zone_adjustments(
            municipality_id, body.effective_year, body.options
        )
        return summary.model_dump(mode="json")
    job_id = await service.start_recalculate_with_zone_adjustments(
        municipality_id, body.effective_year, body.options
    )
    return _accepted(job_id)


@router.get("/{municipality_id}/validate/{year}", response_model=ValidationReport)
async def validate_calculations(
    municipality_id: str, year: int, request: Request, sample_size: int | None = None
) -> ValidationReport:
    service = _get_service(request)
    return await service.validate_calculations(municipality_id, year, sample_size)


@router.get("/jobs", response_model=list[RecalculationJob])
async def list_jobs(
    request: Request, municipality_id: str | None = None, active_only: bool = False
) -> list[RecalculationJob]:
    service = _get_service(request)
    return service.list_jobs(municipality_id, active_only)


@router.get("/jobs/{job_id}", response_model=RecalculationJob)
async def get_job(job_id: str, request: Request) -> RecalculationJob:
    service = _get_service(request)
    job = service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id!r} not found")
    return job


@router.post("/jobs/{job_id}/cancel")
async def cancel_job(job_id: str, request: Request) -> dict:
    service = _get_service(request)
    if service.get_job(job_id) is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id!r} not found")
    return {"job_id": job_id, "cancel_requested": service.cancel_job(job_id)}


# ---------------------------------------------------------------------------
# Billing periods
# ---------------------------------------------------------------------------


@router.get("/{municipality_id}/billing/{year}", response_model=BillingValidation)
async def get_billing_status(municipality_id: str, year: int, request: Request) -> BillingValidation:
    service = _get_service(request)
    return await service.validate_billing_period(municipality_id, year)


@router.post("/{municipality_id}/billing/{year}/lock", response_model=BillingPeriod)
async def lock_billing_year(
    municipality_id: str, year: int, body: LockYearRequest, request: Request
) -> BillingPeriod:
    service = _get_service(request)
    return await service.lock_year(municipality_id, year, body.actor)
