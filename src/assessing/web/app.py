"""FastAPI application for the assessing valuation engine.

Exposes single-record valuation, parcel rollups, mass recalculation jobs and
billing-period checks. Domain errors are mapped to structured JSON bodies.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from assessing.core.config import Settings
from assessing.core.errors import (
    AssessingError,
    AssessmentNotFoundError,
    BillingPeriodLockedError,
    MissingZoneError,
)
from assessing.governance.audit import AuditLogger
from assessing.reference.defaults import CalculationDefaults
from assessing.repositories.memory import (
    AssessmentStore,
    BillingPeriodStore,
    ReferenceDataStore,
)
from assessing.valuation import ValuationService
from assessing.web.assessment_router import router as assessment_router

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str = "0.1.0"
    storage: str


def _build_service(settings: Settings, audit_logger: AuditLogger) -> tuple[ValuationService, object | None]:
    """In-memory stores without a database URL, SQL repositories with one."""
    defaults = CalculationDefaults(settings.calculation.defaults_path)
    if not settings.database.url:
        service = ValuationService(
            ReferenceDataStore(defaults),
            AssessmentStore(),
            BillingPeriodStore(),
            settings=settings,
            audit_logger=audit_logger,
        )
        return service, None

    from assessing.db.engine import DatabaseManager
    from assessing.repositories.postgres.assessments import PostgresAssessmentRepository
    from assessing.repositories.postgres.billing import PostgresBillingRepository
    from assessing.repositories.postgres.reference import PostgresReferenceRepository

    db_manager = DatabaseManager.from_config(settings.database)
    service = ValuationService(
        PostgresReferenceRepository(db_manager, defaults),
        PostgresAssessmentRepository(db_manager),
        PostgresBillingRepository(db_manager),
        settings=settings,
        audit_logger=audit_logger,
    )
    return service, db_manager


def _status_for(exc: AssessingError) -> int:
    if isinstance(exc, BillingPeriodLockedError):
        return 403
    if isinstance(exc, MissingZoneError):
        return 422
    if isinstance(exc, AssessmentNotFoundError):
        return 404
    return 400


def create_app(
    settings: Settings | None = None,
    service: ValuationService | None = None,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can build isolated apps around their
    own in-memory stores.

    Args:
        settings: Application settings. Defaults to Settings().
        service: Optional pre-built ValuationService.
        audit_logger: Optional pre-built AuditLogger.
    """
    if settings is None:
        settings = Settings()

    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Assessing Valuation Engine",
        description="Land, building and parcel valuation with mass recalculation",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if audit_logger is None:
        audit_logger = AuditLogger(config=settings.audit)

    db_manager = None
    if service is None:
        service, db_manager = _build_service(settings, audit_logger)

    app.state.settings = settings
    app.state.audit_logger = audit_logger
    app.state.valuation_service = service
    if db_manager is not None:
        app.state.db_manager = db_manager

    app.include_router(assessment_router)

    @app.exception_handler(AssessingError)
    async def assessing_error_handler(request: Request, exc: AssessingError) -> JSONResponse:
        body = {"error": exc.to_dict()}
        if isinstance(exc, BillingPeriodLockedError) and exc.redirect_year is not None:
            body["redirect_year"] = exc.redirect_year
        return JSONResponse(status_code=_status_for(exc), content=body)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service="assessing",
            storage="sql" if db_manager is not None else "memory",
        )

    return app
