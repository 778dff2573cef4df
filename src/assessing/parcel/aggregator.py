"""Parcel assessment aggregator.

Rolls each card's land, building and feature values into a parcel total.
Every component is rounded to the nearest hundred before it is summed.
"""

from __future__ import annotations

import logging
import time

from assessing.billing.validator import BillingPeriodValidator
from assessing.core.rounding import round_to_nearest_hundred
from assessing.core.types import AuditEvent, CalculationTrigger
from assessing.governance.audit import AuditLogger
from assessing.parcel.models import (
    CardAssessment,
    LandAllocation,
    ParcelAssessment,
    ParcelTotals,
)
from assessing.repositories import resolve
from assessing.repositories.protocols import AssessmentRepository
from assessing.repositories.temporal import TemporalAssessments

logger = logging.getLogger(__name__)


class ParcelAggregator:
    """Builds and persists ParcelAssessment rollups."""

    def __init__(
        self,
        repository: AssessmentRepository,
        billing: BillingPeriodValidator | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._repo = repository
        self._temporal = TemporalAssessments(repository)
        self._billing = billing
        self._audit = audit_logger

    async def aggregate(
        self,
        municipality_id: str,
        property_id: str,
        effective_year: int,
        trigger: CalculationTrigger = CalculationTrigger.MANUAL_RECALC,
        persist: bool = True,
    ) -> ParcelAssessment:
        started = time.perf_counter()
        if persist and self._billing is not None:
            await self._billing.require_writable(municipality_id, effective_year)

        cards = await self._temporal.effective_cards(property_id, effective_year)
        features = await resolve(self._repo.list_features(property_id))

        card_assessments: list[CardAssessment] = []
        allocations: list[LandAllocation] = []
        for card_number, (land, building) in cards.items():
            totals = land.calculated_totals if land is not None else None
            land_value = round_to_nearest_hundred(totals.total_assessed_value) if totals else 0.0
            building_value = (
                round_to_nearest_hundred(building.building_value) if building is not None else 0.0
            )
            improvements = round_to_nearest_hundred(
                sum(
                    f.calculated_value
                    for f in features
                    if f.is_active and f.card_number == card_number
                )
            )
            card_assessments.append(
                CardAssessment(
                    card_number=card_number,
                    land_value=land_value,
                    building_value=building_value,
                    improvements_value=improvements,
                    card_total=land_value + building_value + improvements,
                )
            )
            allocations.append(
                LandAllocation(
                    card_number=card_number,
                    land_value=totals.land_assessed_value if totals else 0.0,
                    view_value=totals.view_assessed_value if totals else 0.0,
                    waterfront_value=totals.waterfront_assessed_value if totals else 0.0,
                )
            )

        parcel_totals = ParcelTotals(
            total_land_value=sum(c.land_value for c in card_assessments),
            total_building_value=sum(c.building_value for c in card_assessments),
            total_improvements_value=sum(c.improvements_value for c in card_assessments),
            total_assessed_value=sum(c.card_total for c in card_assessments),
        )

        parcel = ParcelAssessment(
            municipality_id=municipality_id,
            property_id=property_id,
            effective_year=effective_year,
            parcel_totals=parcel_totals,
            card_assessments=card_assessments,
            land_allocation=allocations,
            total_cards_count=len(card_assessments),
            calculation_trigger=trigger,
        )
        await self._track_change(parcel)
        parcel.calculation_duration_ms = round((time.perf_counter() - started) * 1000, 3)

        if persist:
            parcel = await resolve(self._repo.save_parcel_assessment(parcel))
            if self._audit is not None:
                self._audit.log(
                    AuditEvent(
                        actor="system",
                        action="parcel_rollup",
                        resource=f"parcel:{property_id}",
                        municipality_id=municipality_id,
                        effective_year=effective_year,
                        details={
                            "trigger": trigger.value,
                            "total_assessed_value": parcel_totals.total_assessed_value,
                            "change_amount": parcel.change_amount,
                        },
                    )
                )
        logger.debug(
            "Parcel %s/%d total %.0f across %d card(s)",
            property_id, effective_year, parcel_totals.total_assessed_value, len(card_assessments),
        )
        return parcel

    async def _track_change(self, parcel: ParcelAssessment) -> None:
        """Fill previous_total and the change fields.

        An unchanged re-run keeps the change fields of the stored rollup.
        """
        existing = await resolve(
            self._repo.get_parcel_assessment(parcel.property_id, parcel.effective_year)
        )
        if existing is not None:
            parcel.id = existing.id
            if existing.parcel_totals == parcel.parcel_totals:
                parcel.previous_total = existing.previous_total
                parcel.change_amount = existing.change_amount
                parcel.change_percentage = existing.change_percentage
                return
            previous = existing.parcel_totals.total_assessed_value
        else:
            prior = await resolve(
                self._repo.get_parcel_assessment(parcel.property_id, parcel.effective_year - 1)
            )
            if prior is None:
                return
            previous = prior.parcel_totals.total_assessed_value

        current = parcel.parcel_totals.total_assessed_value
        parcel.previous_total = previous
        parcel.change_amount = current - previous
        parcel.change_percentage = (
            round((current - previous) / previous * 100, 2) if previous else 0.0
        )
