"""Tests for year-versioned assessment access."""

from __future__ import annotations

import pytest

from assessing.building.models import BuildingAssessment
from assessing.core.errors import BillingPeriodLockedError
from assessing.land.models import LandLine
from assessing.repositories.temporal import (
    YEAR_CREATION_REASON,
    TemporalAssessments,
    latest_at_or_before,
)
from tests.conftest import MUNI, YEAR, make_land


@pytest.fixture
def temporal(store, billing) -> TemporalAssessments:
    return TemporalAssessments(store, billing)


def test_latest_at_or_before_picks_max_year():
    records = [
        make_land("P1", effective_year=2020),
        make_land("P1", effective_year=2023),
        make_land("P1", effective_year=2026),
        make_land("P1", effective_year=2024, card_number=2),
    ]
    assert latest_at_or_before(records, 1, 2025).effective_year == 2023
    assert latest_at_or_before(records, 1, 2019) is None
    assert latest_at_or_before(records, 2, 2025).effective_year == 2024


async def test_effective_read_falls_back(store, temporal):
    store.save_land_assessment(make_land("P1", effective_year=YEAR - 2, size=4.0))
    found = await temporal.get_effective_land("P1", 1, YEAR)
    assert found.effective_year == YEAR - 2
    assert await temporal.get_effective_land("P1", 1, YEAR - 3) is None


async def test_get_or_create_seeds_from_prior_year(store, temporal):
    prior = store.save_land_assessment(make_land("P1", effective_year=YEAR - 1, size=4.0))

    created = await temporal.get_or_create_land_for_year("P1", 1, YEAR)

    assert created.effective_year == YEAR
    assert created.id != prior.id
    assert created.change_reason == YEAR_CREATION_REASON
    assert created.last_calculated is None
    assert created.land_use_lines[0].size == 4.0
    assert store.get_land_assessment("P1", 1, YEAR) is not None

    again = await temporal.get_or_create_land_for_year("P1", 1, YEAR)
    assert again.id == created.id


async def test_get_or_create_without_history(temporal):
    assert await temporal.get_or_create_land_for_year("NOPE", 1, YEAR) is None


async def test_update_never_touches_prior_year(store, temporal):
    store.save_land_assessment(make_land("P1", effective_year=YEAR - 1, zone_id="R1"))

    updated = await temporal.update_land_for_year(
        MUNI, "P1", 1, YEAR, {"zone_id": "R2", "land_use_lines": [LandLine(size=9.0)]}
    )

    assert updated.zone_id == "R2"
    assert updated.land_use_lines[0].size == 9.0
    prior = store.get_land_assessment("P1", 1, YEAR - 1)
    assert prior.zone_id == "R1"
    assert prior.land_use_lines[0].size == 3.0


async def test_update_rejected_for_billed_year(store, billing, temporal):
    store.save_land_assessment(make_land("P1", effective_year=YEAR - 1))
    await billing.mark_final_billed(MUNI, YEAR - 1)
    with pytest.raises(BillingPeriodLockedError):
        await temporal.update_land_for_year(MUNI, "P1", 1, YEAR - 1, {"zone_id": "R2"})
    assert store.get_land_assessment("P1", 1, YEAR - 1).zone_id == "R1"


async def test_building_copy_on_write(store, temporal):
    store.save_building_assessment(
        BuildingAssessment(
            municipality_id=MUNI, property_id="P1", effective_year=YEAR - 1, bedrooms=3
        )
    )
    updated = await temporal.update_building_for_year(MUNI, "P1", 1, YEAR, {"bedrooms": 4})
    assert updated.effective_year == YEAR
    assert updated.bedrooms == 4
    assert store.get_building_assessment("P1", 1, YEAR - 1).bedrooms == 3


async def test_effective_cards(store, temporal):
    store.save_land_assessment(make_land("P1", effective_year=YEAR - 1))
    store.save_land_assessment(make_land("P1", card_number=2, effective_year=YEAR))
    store.save_land_assessment(make_land("P1", card_number=3, effective_year=YEAR + 1))
    store.save_building_assessment(
        BuildingAssessment(municipality_id=MUNI, property_id="P1", effective_year=YEAR)
    )

    cards = await temporal.effective_cards("P1", YEAR)

    assert list(cards) == [1, 2]
    land, building = cards[1]
    assert land.effective_year == YEAR - 1
    assert building.effective_year == YEAR
    assert cards[2][1] is None
