"""Tests for parcel rollups."""

from __future__ import annotations

import pytest

from assessing.building.models import BuildingAssessment
from assessing.core.errors import BillingPeriodLockedError
from assessing.core.types import CalculationTrigger
from assessing.land.models import LandTotals
from assessing.parcel.aggregator import ParcelAggregator
from assessing.parcel.models import ParcelAssessment, ParcelTotals, PropertyFeature
from tests.conftest import MUNI, YEAR, make_land


def _land(property_id: str, assessed: float, card_number: int = 1, year: int = YEAR):
    return make_land(
        property_id,
        card_number=card_number,
        effective_year=year,
        calculated_totals=LandTotals(
            land_assessed_value=assessed,
            total_market_value=assessed,
            total_assessed_value=assessed,
        ),
    )


def _building(property_id: str, value: float, card_number: int = 1, year: int = YEAR):
    return BuildingAssessment(
        municipality_id=MUNI,
        property_id=property_id,
        card_number=card_number,
        effective_year=year,
        building_value=value,
    )


@pytest.fixture
def aggregator(store, billing, audit_logger) -> ParcelAggregator:
    return ParcelAggregator(store, billing, audit_logger)


async def test_rolls_up_cards_with_rounding(store, aggregator):
    store.save_land_assessment(_land("P1", 44000))
    store.save_building_assessment(_building("P1", 123456.7))
    store.save_land_assessment(_land("P1", 10049, card_number=2))
    store.save_feature(
        PropertyFeature(municipality_id=MUNI, property_id="P1", calculated_value=2350)
    )
    store.save_feature(
        PropertyFeature(
            municipality_id=MUNI, property_id="P1", calculated_value=999, is_active=False
        )
    )

    parcel = await aggregator.aggregate(MUNI, "P1", YEAR)

    assert parcel.total_cards_count == 2
    first, second = parcel.card_assessments
    assert first.card_number == 1
    assert first.building_value == 123500
    assert first.improvements_value == 2400
    assert first.card_total == 44000 + 123500 + 2400
    assert second.land_value == 10000
    assert second.building_value == 0
    assert parcel.parcel_totals.total_assessed_value == 44000 + 123500 + 2400 + 10000
    assert parcel.parcel_totals.total_land_value == 54000
    assert parcel.calculation_trigger == CalculationTrigger.MANUAL_RECALC
    assert store.get_parcel_assessment("P1", YEAR) is not None


async def test_totals_equal_sum_of_cards(store, aggregator):
    for card in (1, 2, 3):
        store.save_land_assessment(_land("P1", 12345 * card, card_number=card))
        store.save_building_assessment(_building("P1", 54321.5 * card, card_number=card))
    parcel = await aggregator.aggregate(MUNI, "P1", YEAR)
    totals = parcel.parcel_totals
    assert totals.total_assessed_value == sum(c.card_total for c in parcel.card_assessments)
    assert totals.total_assessed_value == (
        totals.total_land_value + totals.total_building_value + totals.total_improvements_value
    )
    assert all(c.card_total % 100 == 0 for c in parcel.card_assessments)


async def test_uses_latest_earlier_year(store, aggregator):
    store.save_land_assessment(_land("P1", 30000, year=YEAR - 2))
    store.save_land_assessment(_land("P1", 35000, year=YEAR - 1))
    parcel = await aggregator.aggregate(MUNI, "P1", YEAR)
    assert parcel.parcel_totals.total_land_value == 35000


async def test_land_allocation(store, aggregator):
    land = make_land(
        "P1",
        calculated_totals=LandTotals(
            land_assessed_value=40000,
            view_assessed_value=10000,
            waterfront_assessed_value=5000,
            total_assessed_value=55000,
        ),
    )
    store.save_land_assessment(land)
    parcel = await aggregator.aggregate(MUNI, "P1", YEAR)
    allocation = parcel.land_allocation[0]
    assert (allocation.land_value, allocation.view_value, allocation.waterfront_value) == (
        40000,
        10000,
        5000,
    )


async def test_change_against_prior_year(store, aggregator):
    store.save_parcel_assessment(
        ParcelAssessment(
            municipality_id=MUNI,
            property_id="P1",
            effective_year=YEAR - 1,
            parcel_totals=ParcelTotals(total_assessed_value=40000),
        )
    )
    store.save_land_assessment(_land("P1", 44000))

    parcel = await aggregator.aggregate(MUNI, "P1", YEAR)
    assert parcel.previous_total == 40000
    assert parcel.change_amount == 4000
    assert parcel.change_percentage == 10.0


async def test_unchanged_rerun_keeps_change_fields(store, aggregator):
    store.save_parcel_assessment(
        ParcelAssessment(
            municipality_id=MUNI,
            property_id="P1",
            effective_year=YEAR - 1,
            parcel_totals=ParcelTotals(total_assessed_value=40000),
        )
    )
    store.save_land_assessment(_land("P1", 44000))

    first = await aggregator.aggregate(MUNI, "P1", YEAR)
    second = await aggregator.aggregate(MUNI, "P1", YEAR)
    assert second.id == first.id
    assert second.parcel_totals == first.parcel_totals
    assert second.previous_total == 40000
    assert second.change_amount == 4000


async def test_changed_rerun_compares_to_stored_total(store, aggregator):
    store.save_land_assessment(_land("P1", 44000))
    await aggregator.aggregate(MUNI, "P1", YEAR)

    store.save_land_assessment(_land("P1", 55000))
    parcel = await aggregator.aggregate(MUNI, "P1", YEAR)
    assert parcel.previous_total == 44000
    assert parcel.change_amount == 11000
    assert parcel.change_percentage == 25.0


async def test_no_cards_is_an_empty_rollup(aggregator):
    parcel = await aggregator.aggregate(MUNI, "EMPTY", YEAR)
    assert parcel.total_cards_count == 0
    assert parcel.parcel_totals.total_assessed_value == 0
    assert parcel.previous_total is None


async def test_locked_year_rejected(store, billing, aggregator):
    store.save_land_assessment(_land("P1", 44000, year=YEAR - 1))
    await billing.mark_final_billed(MUNI, YEAR - 1)

    with pytest.raises(BillingPeriodLockedError) as exc_info:
        await aggregator.aggregate(MUNI, "P1", YEAR - 1)
    assert exc_info.value.code == "FINAL_BILLING_COMPLETED"
    assert exc_info.value.redirect_year == YEAR
    assert store.get_parcel_assessment("P1", YEAR - 1) is None


async def test_preview_skips_billing_and_persistence(store, billing, aggregator):
    store.save_land_assessment(_land("P1", 44000, year=YEAR + 1))
    parcel = await aggregator.aggregate(MUNI, "P1", YEAR + 1, persist=False)
    assert parcel.parcel_totals.total_assessed_value == 44000
    assert store.get_parcel_assessment("P1", YEAR + 1) is None


async def test_rollup_is_audited(store, aggregator, audit_logger):
    store.save_land_assessment(_land("P1", 44000))
    await aggregator.aggregate(MUNI, "P1", YEAR, trigger=CalculationTrigger.LAND_UPDATE)
    events = audit_logger.query({"action": "parcel_rollup"})
    assert len(events) == 1
    assert events[0].resource == "parcel:P1"
    assert events[0].details["trigger"] == "land_update"
    assert audit_logger.verify_chain()
