"""Tests for the in-memory job progress tracker."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from assessing.core.types import JobStatus
from assessing.recalc.models import RecalculationJob
from assessing.recalc.progress import ProgressTracker
from tests.conftest import MUNI, YEAR


def _job(**fields) -> RecalculationJob:
    return RecalculationJob(municipality_id=MUNI, effective_year=YEAR, **fields)


def test_create_get_update():
    tracker = ProgressTracker()
    job = tracker.create(_job())
    assert tracker.get(job.job_id) is job

    updated = tracker.update(job.job_id, status=JobStatus.RUNNING, processed=5)
    assert updated.status == JobStatus.RUNNING
    assert updated.processed == 5
    assert tracker.update("missing", processed=1) is None


def test_request_cancel_only_for_live_jobs():
    tracker = ProgressTracker()
    live = tracker.create(_job(status=JobStatus.RUNNING))
    done = tracker.create(_job(status=JobStatus.COMPLETED))

    assert tracker.request_cancel(live.job_id)
    assert live.cancel_requested
    assert not tracker.request_cancel(done.job_id)
    assert not tracker.request_cancel("missing")


def test_cleanup_drops_old_finished_jobs():
    tracker = ProgressTracker()
    old = tracker.create(_job(status=JobStatus.FAILED))
    old.updated_at = datetime.now(timezone.utc) - timedelta(hours=2)
    stale_running = tracker.create(_job(status=JobStatus.RUNNING))
    stale_running.updated_at = datetime.now(timezone.utc) - timedelta(hours=2)
    recent = tracker.create(_job(status=JobStatus.COMPLETED))

    assert tracker.cleanup(max_age_seconds=3600) == 1
    assert tracker.get(old.job_id) is None
    assert tracker.get(stale_running.job_id) is not None
    assert tracker.get(recent.job_id) is not None
    assert len(tracker.list_jobs()) == 2


def test_list_jobs_filters():
    tracker = ProgressTracker()
    pending = tracker.create(_job())
    done = tracker.create(_job(status=JobStatus.CANCELLED))
    other = tracker.create(
        RecalculationJob(municipality_id="city", effective_year=YEAR, status=JobStatus.RUNNING)
    )
    done.updated_at = datetime.now(timezone.utc) + timedelta(seconds=1)

    assert tracker.list_jobs(active_only=True) in ([pending, other], [other, pending])
    assert tracker.list_jobs(MUNI) == [done, pending]
    assert tracker.list_jobs(MUNI, active_only=True) == [pending]
    assert tracker.list_jobs("nowhere") == []
