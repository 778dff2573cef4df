"""Copy-on-write access to year-versioned assessment records.

A record exists per (property, card, effective_year). Reads for a year with
no exact record fall back to the latest earlier year. Writes for such a year
first seed a new record from that earlier one; prior-year records are never
modified.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, TypeVar

from assessing.billing.validator import BillingPeriodValidator
from assessing.building.models import BuildingAssessment
from assessing.land.models import LandAssessment
from assessing.repositories import resolve
from assessing.repositories.protocols import AssessmentRepository

logger = logging.getLogger(__name__)

YEAR_CREATION_REASON = "year_creation"

R = TypeVar("R", LandAssessment, BuildingAssessment)


def latest_at_or_before(records: list[R], card_number: int, year: int) -> R | None:
    candidates = [
        r for r in records if r.card_number == card_number and r.effective_year <= year
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda r: r.effective_year)


def seed_for_year(record: R, year: int, change_reason: str) -> R:
    """Copy ``record`` into ``year`` as a new, not yet calculated record."""
    now = datetime.now(timezone.utc)
    return record.model_copy(
        deep=True,
        update={
            "id": str(uuid.uuid4()),
            "effective_year": year,
            "change_reason": change_reason,
            "last_calculated": None,
            "created_at": now,
            "updated_at": now,
        },
    )


class TemporalAssessments:
    """Effective-year lookups and copy-on-write writes over a repository."""

    def __init__(
        self,
        repository: AssessmentRepository,
        billing: BillingPeriodValidator | None = None,
    ) -> None:
        self._repo = repository
        self._billing = billing

    # -- land --

    async def get_effective_land(
        self, property_id: str, card_number: int, year: int
    ) -> LandAssessment | None:
        records = await resolve(self._repo.list_land_assessments_for_property(property_id))
        return latest_at_or_before(records, card_number, year)

    async def get_or_create_land_for_year(
        self,
        property_id: str,
        card_number: int,
        year: int,
        change_reason: str = YEAR_CREATION_REASON,
    ) -> LandAssessment | None:
        exact = await resolve(self._repo.get_land_assessment(property_id, card_number, year))
        if exact is not None:
            return exact
        source = await self.get_effective_land(property_id, card_number, year)
        if source is None:
            return None
        seeded = seed_for_year(source, year, change_reason)
        logger.info(
            "Seeded land assessment %s card %d for %d from %d",
            property_id, card_number, year, source.effective_year,
        )
        return await resolve(self._repo.save_land_assessment(seeded))

    async def update_land_for_year(
        self,
        municipality_id: str,
        property_id: str,
        card_number: int,
        year: int,
        changes: dict[str, Any],
    ) -> LandAssessment | None:
        """Apply ``changes`` to the year's record, seeding it first if needed."""
        if self._billing is not None:
            await self._billing.require_writable(municipality_id, year)
        record = await self.get_or_create_land_for_year(property_id, card_number, year)
        if record is None:
            return None
        updated = type(record).model_validate(
            {**record.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
        )
        return await resolve(self._repo.save_land_assessment(updated))

    # -- buildings --

    async def get_effective_building(
        self, property_id: str, card_number: int, year: int
    ) -> BuildingAssessment | None:
        records = await resolve(self._repo.list_building_assessments_for_property(property_id))
        return latest_at_or_before(records, card_number, year)

    async def get_or_create_building_for_year(
        self,
        property_id: str,
        card_number: int,
        year: int,
        change_reason: str = YEAR_CREATION_REASON,
    ) -> BuildingAssessment | None:
        exact = await resolve(self._repo.get_building_assessment(property_id, card_number, year))
        if exact is not None:
            return exact
        source = await self.get_effective_building(property_id, card_number, year)
        if source is None:
            return None
        seeded = seed_for_year(source, year, change_reason)
        return await resolve(self._repo.save_building_assessment(seeded))

    async def update_building_for_year(
        self,
        municipality_id: str,
        property_id: str,
        card_number: int,
        year: int,
        changes: dict[str, Any],
    ) -> BuildingAssessment | None:
        if self._billing is not None:
            await self._billing.require_writable(municipality_id, year)
        record = await self.get_or_create_building_for_year(property_id, card_number, year)
        if record is None:
            return None
        updated = type(record).model_validate(
            {**record.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
        )
        return await resolve(self._repo.save_building_assessment(updated))

    # -- cards --

    async def effective_cards(
        self, property_id: str, year: int
    ) -> dict[int, tuple[LandAssessment | None, BuildingAssessment | None]]:
        """Effective land and building record per card number, ordered by card."""
        land = await resolve(self._repo.list_land_assessments_for_property(property_id))
        buildings = await resolve(self._repo.list_building_assessments_for_property(property_id))
        card_numbers = sorted(
            {r.card_number for r in land if r.effective_year <= year}
            | {r.card_number for r in buildings if r.effective_year <= year}
        )
        return {
            card: (
                latest_at_or_before(land, card, year),
                latest_at_or_before(buildings, card, year),
            )
            for card in card_numbers
        }
