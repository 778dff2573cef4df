"""Tests for the assessing API router."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from assessing.billing.models import BillingPeriod
from assessing.building.models import BuildingAssessment
from assessing.core.config import BillingConfig, DatabaseConfig, Settings
from assessing.valuation import ValuationService
from assessing.web.app import create_app
from tests.conftest import MUNI, YEAR, make_land

BASE = f"/api/assessing/{MUNI}"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database=DatabaseConfig(url=None),
        billing=BillingConfig(current_year=YEAR),
    )


@pytest.fixture
def service(reference, store, billing_store, settings, audit_logger) -> ValuationService:
    return ValuationService(
        reference, store, billing_store, settings=settings, audit_logger=audit_logger
    )


@pytest.fixture
def app(settings, service, audit_logger):
    return create_app(settings=settings, service=service, audit_logger=audit_logger)


@pytest.fixture
def client(app):
    return TestClient(app)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "service": "assessing",
        "version": "0.1.0",
        "storage": "memory",
    }


class TestSingleRecord:
    def test_land_calculate_seeds_year_and_rolls_up(self, client, store):
        store.save_land_assessment(make_land("P1", effective_year=YEAR - 1))

        resp = client.post(
            f"{BASE}/land/calculate", json={"property_id": "P1", "effective_year": YEAR}
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["land_assessment"]["effective_year"] == YEAR
        assert data["land_assessment"]["calculated_totals"]["total_assessed_value"] == 44000
        assert data["parcel"]["parcel_totals"]["total_assessed_value"] == 44000
        assert data["parcel"]["calculation_trigger"] == "land_update"
        assert store.get_land_assessment("P1", 1, YEAR - 1).calculated_totals is None

    def test_land_calculate_applies_changes(self, client, store):
        store.save_land_assessment(make_land("P1"))
        resp = client.post(
            f"{BASE}/land/calculate",
            json={
                "property_id": "P1",
                "effective_year": YEAR,
                "changes": {"neighborhood_id": "N2"},
            },
        )
        assert resp.status_code == 200
        assert resp.json()["parcel"]["parcel_totals"]["total_assessed_value"] == 48000

    def test_building_calculate(self, client, store):
        store.save_land_assessment(make_land("P1"))
        store.save_building_assessment(
            BuildingAssessment(
                municipality_id=MUNI, property_id="P1", effective_year=YEAR, effective_area=1800
            )
        )
        resp = client.post(
            f"{BASE}/building/calculate",
            json={
                "property_id": "P1",
                "effective_year": YEAR,
                "changes": {"bedrooms": 3, "full_baths": 2},
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["building_assessment"]["building_value"] == pytest.approx(117.46 * 1800)
        assert data["parcel"]["parcel_totals"]["total_assessed_value"] == 44000 + 211400

    def test_missing_record_is_404(self, client):
        resp = client.post(
            f"{BASE}/land/calculate", json={"property_id": "NOPE", "effective_year": YEAR}
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "ASSESSMENT_NOT_FOUND"

    def test_missing_zone_is_422(self, client, store):
        store.save_land_assessment(make_land("P1", zone_id=None))
        resp = client.post(
            f"{BASE}/land/calculate", json={"property_id": "P1", "effective_year": YEAR}
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "ZONE_REQUIRED"

    def test_final_billed_year_is_403_with_redirect(self, client, store, billing_store):
        store.save_land_assessment(make_land("P1", effective_year=YEAR - 1))
        billing_store.save_billing_period(
            BillingPeriod(municipality_id=MUNI, year=YEAR - 1, is_final_billed=True)
        )
        resp = client.post(
            f"{BASE}/land/calculate", json={"property_id": "P1", "effective_year": YEAR - 1}
        )
        assert resp.status_code == 403
        body = resp.json()
        assert body["error"]["code"] == "FINAL_BILLING_COMPLETED"
        assert body["redirect_year"] == YEAR

    def test_aggregate(self, client, store):
        store.save_land_assessment(make_land("P1"))
        client.post(f"{BASE}/land/calculate", json={"property_id": "P1", "effective_year": YEAR})
        resp = client.post(f"{BASE}/parcels/P1/aggregate", json={"effective_year": YEAR})
        assert resp.status_code == 200
        assert resp.json()["parcel_totals"]["total_assessed_value"] == 44000
        assert resp.json()["calculation_trigger"] == "manual_recalc"


class TestRecalculation:
    def test_recalculate_inline(self, client, store):
        store.save_land_assessment(make_land("P1"))
        store.save_land_assessment(make_land("P2"))
        resp = client.post(f"{BASE}/recalculate", json={"effective_year": YEAR, "wait": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "completed"
        assert data["processed"] == 2
        assert data["updated"] == 2

    def test_recalculate_future_year_is_403(self, client):
        resp = client.post(f"{BASE}/recalculate", json={"effective_year": YEAR + 1})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "FUTURE_YEAR_MODIFICATION"

    def test_background_job_can_be_polled(self, app, store):
        store.save_land_assessment(make_land("P1"))
        with TestClient(app) as client:
            resp = client.post(f"{BASE}/recalculate", json={"effective_year": YEAR})
            assert resp.status_code == 202
            job_id = resp.json()["job_id"]
            assert resp.json()["status_url"] == f"/api/assessing/jobs/{job_id}"

            status = None
            for _ in range(100):
                status = client.get(f"/api/assessing/jobs/{job_id}").json()["status"]
                if status == "completed":
                    break
                time.sleep(0.02)
            assert status == "completed"

    def test_affected_inline(self, client, store):
        store.save_land_assessment(make_land("P1"))
        store.save_land_assessment(make_land("P2", neighborhood_id="N2"))
        resp = client.post(
            f"{BASE}/recalculate-affected",
            json={
                "effective_year": YEAR,
                "change_type": "neighborhood",
                "change_id": "N2",
                "wait": True,
            },
        )
        assert resp.status_code == 200
        assert resp.json()["total"] == 1

    def test_unknown_change_type_is_400(self, client):
        resp = client.post(
            f"{BASE}/recalculate-affected",
            json={"effective_year": YEAR, "change_type": "planet", "wait": True},
        )
        assert resp.status_code == 400

    def test_zone_adjustments_inline(self, client, store):
        store.save_land_assessment(make_land("P1", size=3.0))
        resp = client.post(
            f"{BASE}/recalculate-zone-adjustments", json={"effective_year": YEAR, "wait": True}
        )
        assert resp.status_code == 200
        assert resp.json()["zone_adjustments"] == 1
        assert resp.json()["excess_acreage_created"] == 1

    def test_validate(self, client, store):
        store.save_land_assessment(make_land("P1"))
        client.post(f"{BASE}/recalculate", json={"effective_year": YEAR, "wait": True})
        resp = client.get(f"{BASE}/validate/{YEAR}", params={"sample_size": 5})
        assert resp.status_code == 200
        assert resp.json()["checked"] == 1
        assert resp.json()["discrepancies"] == []

    def test_list_jobs(self, client, store):
        store.save_land_assessment(make_land("P1"))
        client.post(f"{BASE}/recalculate", json={"effective_year": YEAR, "wait": True})

        jobs = client.get("/api/assessing/jobs", params={"municipality_id": MUNI}).json()
        assert len(jobs) == 1
        assert jobs[0]["status"] == "completed"
        assert client.get("/api/assessing/jobs", params={"active_only": True}).json() == []
        assert client.get("/api/assessing/jobs", params={"municipality_id": "city"}).json() == []

    def test_unknown_job(self, client):
        assert client.get("/api/assessing/jobs/missing").status_code == 404
        assert client.post("/api/assessing/jobs/missing/cancel").status_code == 404


class TestBilling:
    def test_future_year_status(self, client):
        resp = client.get(f"{BASE}/billing/{YEAR + 1}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["allowed"] is False
        assert data["code"] == "FUTURE_YEAR_MODIFICATION"
        assert data["redirect"]["year"] == YEAR

    def test_lock_year(self, client):
        resp = client.post(f"{BASE}/billing/{YEAR - 1}/lock", json={"actor": "assessor"})
        assert resp.status_code == 200
        assert resp.json()["is_locked"] is True

        status = client.get(f"{BASE}/billing/{YEAR - 1}").json()
        assert status["allowed"] is False
        assert status["code"] == "YEAR_LOCKED"
