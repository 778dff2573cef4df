"""Valuation facade.

Wires the calculators, billing validator, parcel aggregator and
recalculation orchestrator over one set of repositories. The web layer and
scripts talk to this class only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from assessing.billing.models import BillingValidation
from assessing.billing.validator import BillingPeriodValidator
from assessing.building.models import BuildingAssessment
from assessing.core.config import Settings
from assessing.core.errors import AssessmentNotFoundError
from assessing.core.types import CalculationTrigger, ChangeType
from assessing.governance.audit import AuditLogger
from assessing.land.models import LandAssessment
from assessing.parcel.aggregator import ParcelAggregator
from assessing.parcel.models import ParcelAssessment
from assessing.recalc.models import (
    RecalculationJob,
    RecalculationOptions,
    RecalculationSummary,
    ValidationReport,
)
from assessing.recalc.orchestrator import RecalculationOrchestrator
from assessing.recalc.progress import ProgressTracker
from assessing.reference.context import CalculationContext, build_context
from assessing.repositories.protocols import (
    AreaProvider,
    AssessmentRepository,
    BillingRepository,
    ReferenceDataReader,
)
from assessing.repositories.temporal import TemporalAssessments

logger = logging.getLogger(__name__)


class ValuationService:
    """Entry point for single-record edits, rollups and mass recalculation."""

    def __init__(
        self,
        reference: ReferenceDataReader,
        repository: AssessmentRepository,
        billing_repository: BillingRepository,
        settings: Settings | None = None,
        audit_logger: AuditLogger | None = None,
        area_provider: AreaProvider | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self.reference = reference
        self.repository = repository
        self.billing = BillingPeriodValidator(billing_repository, self._settings.billing, clock)
        self.temporal = TemporalAssessments(repository, self.billing)
        self.aggregator = ParcelAggregator(repository, self.billing, audit_logger)
        self.progress = ProgressTracker()
        self.orchestrator = RecalculationOrchestrator(
            reference,
            repository,
            self.billing,
            progress=self.progress,
            config=self._settings.recalc,
            audit_logger=audit_logger,
            area_provider=area_provider,
        )

    async def context(self, municipality_id: str, effective_year: int) -> CalculationContext:
        return await build_context(self.reference, municipality_id, effective_year)

    # ------------------------------------------------------------------
    # Single-record edits
    # ------------------------------------------------------------------

    async def calculate_land(
        self,
        municipality_id: str,
        property_id: str,
        card_number: int,
        effective_year: int,
        changes: dict[str, Any] | None = None,
    ) -> tuple[LandAssessment, ParcelAssessment]:
        """Apply ``changes`` to a card's land record, then revalue the property."""
        record = await self.temporal.update_land_for_year(
            municipality_id, property_id, card_number, effective_year, changes or {}
        )
        if record is None:
            raise AssessmentNotFoundError(
                f"No land assessment for property {property_id} card {card_number} "
                f"in or before {effective_year}",
                {"property_id": property_id, "card_number": card_number},
            )
        parcel = await self.orchestrator.recalculate_property(
            municipality_id, property_id, effective_year, trigger=CalculationTrigger.LAND_UPDATE
        )
        land = await self.temporal.get_effective_land(property_id, card_number, effective_year)
        return land, parcel

    async def calculate_building(
        self,
        municipality_id: str,
        property_id: str,
        card_number: int,
        effective_year: int,
        changes: dict[str, Any] | None = None,
    ) -> tuple[BuildingAssessment, ParcelAssessment]:
        record = await self.temporal.update_building_for_year(
            municipality_id, property_id, card_number, effective_year, changes or {}
        )
        if record is None:
            raise AssessmentNotFoundError(
                f"No building assessment for property {property_id} card {card_number} "
                f"in or before {effective_year}",
                {"property_id": property_id, "card_number": card_number},
            )
        parcel = await self.orchestrator.recalculate_property(
            municipality_id,
            property_id,
            effective_year,
            trigger=CalculationTrigger.BUILDING_UPDATE,
        )
        building = await self.temporal.get_effective_building(
            property_id, card_number, effective_year
        )
        return building, parcel

    async def aggregate_parcel(
        self,
        municipality_id: str,
        property_id: str,
        effective_year: int,
        trigger: CalculationTrigger = CalculationTrigger.MANUAL_RECALC,
    ) -> ParcelAssessment:
        return await self.aggregator.aggregate(
            municipality_id, property_id, effective_year, trigger=trigger
        )

    # ------------------------------------------------------------------
    # Mass recalculation
    # ------------------------------------------------------------------

    async def recalculate_all(
        self,
        municipality_id: str,
        effective_year: int,
        options: RecalculationOptions | None = None,
    ) -> RecalculationSummary:
        return await self.orchestrator.recalculate_all(municipality_id, effective_year, options)

    async def recalculate_affected(
        self,
        municipality_id: str,
        change_type: ChangeType | str,
        change_id: str | None,
        effective_year: int,
        options: RecalculationOptions | None = None,
    ) -> RecalculationSummary:
        return await self.orchestrator.recalculate_affected(
            municipality_id, change_type, change_id, effective_year, options
        )

    async def recalculate_with_zone_adjustments(
        self,
        municipality_id: str,
        effective_year: int,
        options: RecalculationOptions | None = None,
    ) -> RecalculationSummary:
        return await self.orchestrator.recalculate_with_zone_adjustments(
            municipality_id, effective_year, options
        )

    async def start_recalculate_all(
        self,
        municipality_id: str,
        effective_year: int,
        options: RecalculationOptions | None = None,
    ) -> str:
        """Queue a background RecalculateAll and return its job id.

        The billing check runs before the job is queued so a locked year is
        rejected to the caller instead of failing inside the task.
        """
        await self.billing.require_writable(municipality_id, effective_year)
        job_id = self._new_job(municipality_id, effective_year, "all")
        return self.orchestrator.start(
            lambda jid: self.orchestrator.recalculate_all(
                municipality_id, effective_year, options, job_id=jid
            ),
            job_id,
        )

    async def start_recalculate_affected(
        self,
        municipality_id: str,
        change_type: ChangeType | str,
        change_id: str | None,
        effective_year: int,
        options: RecalculationOptions | None = None,
    ) -> str:
        change_type = ChangeType(change_type)
        await self.billing.require_writable(municipality_id, effective_year)
        job_id = self._new_job(municipality_id, effective_year, f"affected:{change_type.value}")
        return self.orchestrator.start(
            lambda jid: self.orchestrator.recalculate_affected(
                municipality_id, change_type, change_id, effective_year, options, job_id=jid
            ),
            job_id,
        )

    async def start_recalculate_with_zone_adjustments(
        self,
        municipality_id: str,
        effective_year: int,
        options: RecalculationOptions | None = None,
    ) -> str:
        await self.billing.require_writable(municipality_id, effective_year)
        job_id = self._new_job(municipality_id, effective_year, "zone_adjustment")
        return self.orchestrator.start(
            lambda jid: self.orchestrator.recalculate_with_zone_adjustments(
                municipality_id, effective_year, options, job_id=jid
            ),
            job_id,
        )

    def _new_job(self, municipality_id: str, effective_year: int, kind: str) -> str:
        removed = self.progress.cleanup(self._settings.recalc.job_max_age_seconds)
        if removed:
            logger.debug("Dropped %d finished job(s) from the progress tracker", removed)
        return self.orchestrator.new_job_id(municipality_id, effective_year, kind)

    def get_job(self, job_id: str) -> RecalculationJob | None:
        return self.progress.get(job_id)

    def list_jobs(
        self, municipality_id: str | None = None, active_only: bool = False
    ) -> list[RecalculationJob]:
        return self.progress.list_jobs(municipality_id, active_only)

    def cancel_job(self, job_id: str) -> bool:
        return self.orchestrator.cancel(job_id)

    async def validate_calculations(
        self, municipality_id: str, effective_year: int, sample_size: int | None = None
    ) -> ValidationReport:
        return await self.orchestrator.validate_calculations(
            municipality_id, effective_year, sample_size
        )

    # ------------------------------------------------------------------
    # Billing
    # ------------------------------------------------------------------

    async def validate_billing_period(
        self, municipality_id: str, effective_year: int
    ) -> BillingValidation:
        return await self.billing.validate(municipality_id, effective_year)

    async def lock_year(self, municipality_id: str, year: int, actor: str):
        return await self.billing.lock_year(municipality_id, year, actor)
