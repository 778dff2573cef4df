"""In-memory progress tracker for recalculation jobs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from assessing.recalc.models import RecalculationJob

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Holds the live state of every job, keyed by job id."""

    def __init__(self) -> None:
        self._jobs: dict[str, RecalculationJob] = {}

    def create(self, job: RecalculationJob) -> RecalculationJob:
        self._jobs[job.job_id] = job
        return job

    def update(self, job_id: str, **fields: Any) -> RecalculationJob | None:
        job = self._jobs.get(job_id)
        if job is None:
            return None
        for name, value in fields.items():
            setattr(job, name, value)
        job.updated_at = datetime.now(timezone.utc)
        return job

    def get(self, job_id: str) -> RecalculationJob | None:
        return self._jobs.get(job_id)

    def request_cancel(self, job_id: str) -> bool:
        job = self._jobs.get(job_id)
        if job is None or job.is_finished:
            return False
        job.cancel_requested = True
        logger.info("Cancellation requested for job %s", job_id)
        return True

    def cleanup(self, max_age_seconds: int = 3600) -> int:
        """Drop finished jobs whose last update is older than ``max_age_seconds``."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
        stale = [
            job_id
            for job_id, job in self._jobs.items()
            if job.is_finished and job.updated_at < cutoff
        ]
        for job_id in stale:
            del self._jobs[job_id]
        return len(stale)

    def list_jobs(
        self, municipality_id: str | None = None, active_only: bool = False
    ) -> list[RecalculationJob]:
        """Jobs newest first, optionally limited to one municipality or to live jobs."""
        jobs = [
            job
            for job in self._jobs.values()
            if (municipality_id is None or job.municipality_id == municipality_id)
            and not (active_only and job.is_finished)
        ]
        return sorted(jobs, key=lambda job: job.updated_at, reverse=True)
