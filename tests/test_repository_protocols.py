"""Tests for repository protocol conformance.

Both the in-memory stores and the SQL repositories must satisfy the
runtime-checkable Protocol interfaces the services are written against.
"""

from __future__ import annotations

from assessing.building.area import SketchAreaStore
from assessing.db.engine import DatabaseManager
from assessing.repositories import resolve
from assessing.repositories.memory import (
    AssessmentStore,
    BillingPeriodStore,
    ReferenceDataStore,
)
from assessing.repositories.postgres.assessments import PostgresAssessmentRepository
from assessing.repositories.postgres.billing import PostgresBillingRepository
from assessing.repositories.postgres.reference import PostgresReferenceRepository
from assessing.repositories.protocols import (
    AreaProvider,
    AssessmentRepository,
    BillingRepository,
    ReferenceDataReader,
)


def test_reference_store_satisfies_protocol():
    assert isinstance(ReferenceDataStore(), ReferenceDataReader)


def test_assessment_store_satisfies_protocol():
    assert isinstance(AssessmentStore(), AssessmentRepository)


def test_billing_store_satisfies_protocol():
    assert isinstance(BillingPeriodStore(), BillingRepository)


def test_sketch_store_satisfies_protocol():
    assert isinstance(SketchAreaStore(), AreaProvider)


async def test_sql_repositories_satisfy_protocols():
    db = DatabaseManager("sqlite+aiosqlite:///:memory:")
    assert isinstance(PostgresReferenceRepository(db), ReferenceDataReader)
    assert isinstance(PostgresAssessmentRepository(db), AssessmentRepository)
    assert isinstance(PostgresBillingRepository(db), BillingRepository)
    await db.close()


async def test_resolve_with_sync_value():
    """resolve() should return sync values directly."""
    assert await resolve(42) == 42


async def test_resolve_with_async_value():
    """resolve() should await coroutines."""

    async def async_fn():
        return "hello"

    assert await resolve(async_fn()) == "hello"
