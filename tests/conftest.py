"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from assessing.billing.validator import BillingPeriodValidator
from assessing.core.config import AuditConfig, BillingConfig
from assessing.core.types import AttributeKind
from assessing.governance.audit import AuditLogger
from assessing.land.models import LandAssessment, LandLine
from assessing.reference.defaults import CalculationDefaults
from assessing.reference.models import (
    AttributeFactor,
    CurrentUseCategory,
    LadderTier,
    Zone,
)
from assessing.repositories.memory import (
    AssessmentStore,
    BillingPeriodStore,
    ReferenceDataStore,
)

MUNI = "town"
YEAR = 2025


def make_land(
    property_id: str,
    size: float = 3.0,
    card_number: int = 1,
    effective_year: int = YEAR,
    zone_id: str | None = "R1",
    neighborhood_id: str | None = "N1",
    lines: list[LandLine] | None = None,
    **fields,
) -> LandAssessment:
    """A land assessment with one acreage line unless ``lines`` is given."""
    return LandAssessment(
        municipality_id=MUNI,
        property_id=property_id,
        card_number=card_number,
        effective_year=effective_year,
        zone_id=zone_id,
        neighborhood_id=neighborhood_id,
        land_use_lines=lines if lines is not None else [LandLine(size=size, topography="Level")],
        **fields,
    )


def seed_reference(store: ReferenceDataStore) -> ReferenceDataStore:
    """Zone R1 (minimum 1 AC), ladder (1, 20000) -> (5, 60000), neighborhood N1 at 1.1."""
    store.add_zone(
        Zone(
            id="R1",
            municipality_id=MUNI,
            name="Residential 1",
            minimum_acreage=1.0,
            excess_land_cost_per_acre=5000,
            base_view_value=10000,
        )
    )
    store.set_ladder(
        MUNI,
        "R1",
        [
            LadderTier(zone_id="R1", acreage=1.0, value=20000, frontage_rate=200),
            LadderTier(zone_id="R1", acreage=5.0, value=60000),
        ],
    )
    store.add_attribute_factor(
        MUNI, AttributeFactor(id="N1", kind=AttributeKind.NEIGHBORHOOD, code="N1", factor=1.1)
    )
    store.add_attribute_factor(
        MUNI, AttributeFactor(id="N2", kind=AttributeKind.NEIGHBORHOOD, code="N2", factor=1.2)
    )
    store.add_attribute_factor(
        MUNI,
        AttributeFactor(
            id="TOPO-L", kind=AttributeKind.TOPOGRAPHY, code="L", display_text="Level", factor=1.0
        ),
    )
    store.add_attribute_factor(
        MUNI,
        AttributeFactor(
            id="TOPO-S", kind=AttributeKind.TOPOGRAPHY, code="S", display_text="Steep", factor=0.8
        ),
    )
    store.add_current_use_category(
        MUNI, CurrentUseCategory(code="FARM", display_text="Farm", min_rate=100, max_rate=300)
    )
    return store


@pytest.fixture
def defaults() -> CalculationDefaults:
    return CalculationDefaults()


@pytest.fixture
def reference(defaults) -> ReferenceDataStore:
    return seed_reference(ReferenceDataStore(defaults))


@pytest.fixture
def store() -> AssessmentStore:
    return AssessmentStore()


@pytest.fixture
def billing_store() -> BillingPeriodStore:
    return BillingPeriodStore()


@pytest.fixture
def billing(billing_store) -> BillingPeriodValidator:
    return BillingPeriodValidator(billing_store, BillingConfig(current_year=YEAR))


@pytest.fixture
def audit_logger(tmp_path) -> AuditLogger:
    return AuditLogger(config=AuditConfig(log_dir=str(tmp_path / "audit")))
