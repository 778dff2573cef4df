"""Recalculation orchestrator.

Propagates reference-data changes to stored assessments. Records are
streamed through the repository cursor in batches; each batch fetches its
views and waterfronts concurrently, is recomputed in memory and persisted
with a single bulk write. Jobs move pending -> running -> completed, failed
or cancelled, and report progress at batch boundaries.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import defaultdict
from datetime import datetime, timezone

from assessing.billing.validator import BillingPeriodValidator
from assessing.building.calculator import BuildingCalculator
from assessing.building.models import BuildingAssessment
from assessing.core.config import RecalculationConfig
from assessing.core.errors import AssessingError, RecalculationCancelledError
from assessing.core.types import AuditEvent, CalculationTrigger, ChangeType, JobStatus
from assessing.governance.audit import AuditLogger
from assessing.land.calculator import LandCalculator
from assessing.land.models import (
    LandAssessment,
    LandAssessmentFilter,
    PropertyView,
    PropertyWaterfront,
)
from assessing.land.zone_adjustment import apply_zone_minimum
from assessing.parcel.aggregator import ParcelAggregator
from assessing.parcel.models import ParcelAssessment
from assessing.recalc.models import (
    Discrepancy,
    RecalculationJob,
    RecalculationOptions,
    RecalculationSummary,
    RecordError,
    ValidationReport,
)
from assessing.recalc.progress import ProgressTracker
from assessing.reference.context import CalculationContext, build_context
from assessing.repositories import resolve
from assessing.repositories.protocols import (
    AreaProvider,
    AssessmentRepository,
    ReferenceDataReader,
)
from assessing.repositories.temporal import (
    TemporalAssessments,
    latest_at_or_before,
    seed_for_year,
)

logger = logging.getLogger(__name__)

MASS_YEAR_CREATION_REASON = "mass_recalculation_year_creation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _land_values(assessment: LandAssessment) -> tuple:
    return (
        [line.model_dump() for line in assessment.land_use_lines],
        assessment.calculated_totals.model_dump() if assessment.calculated_totals else None,
    )


class RecalculationOrchestrator:
    """Runs mass, selective and single-property recalculations."""

    def __init__(
        self,
        reference: ReferenceDataReader,
        repository: AssessmentRepository,
        billing: BillingPeriodValidator,
        progress: ProgressTracker | None = None,
        config: RecalculationConfig | None = None,
        audit_logger: AuditLogger | None = None,
        area_provider: AreaProvider | None = None,
    ) -> None:
        self._reference = reference
        self._repo = repository
        self._billing = billing
        self._progress = progress or ProgressTracker()
        self._config = config or RecalculationConfig()
        self._audit = audit_logger
        self._areas = area_provider
        self._temporal = TemporalAssessments(repository, billing)
        self._aggregator = ParcelAggregator(repository)
        self._tasks: set[asyncio.Task] = set()

    @property
    def progress(self) -> ProgressTracker:
        return self._progress

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def recalculate_all(
        self,
        municipality_id: str,
        effective_year: int,
        options: RecalculationOptions | None = None,
        job_id: str | None = None,
    ) -> RecalculationSummary:
        """Recalculate every land (and building) assessment of a year."""
        options = options or RecalculationOptions()
        await self._require_writable(municipality_id, effective_year)
        job = self._job(job_id, "all", municipality_id, effective_year)
        land_filter = LandAssessmentFilter(only_missing=options.only_missing)
        return await self._run(job, land_filter, options, ensure_year=True)

    async def recalculate_affected(
        self,
        municipality_id: str,
        change_type: ChangeType | str,
        change_id: str | None,
        effective_year: int,
        options: RecalculationOptions | None = None,
        job_id: str | None = None,
    ) -> RecalculationSummary:
        """Recalculate only the records a reference-data change can affect."""
        change_type = ChangeType(change_type)
        options = options or RecalculationOptions(include_buildings=False)
        await self._require_writable(municipality_id, effective_year)
        job = self._job(job_id, f"affected:{change_type.value}", municipality_id, effective_year)

        land_filter = await self._filter_for_change(municipality_id, change_type, change_id)
        if land_filter is None:
            logger.info(
                "No active views reference view attribute %s; nothing to recalculate", change_id
            )
            self._progress.update(
                job.job_id, status=JobStatus.COMPLETED, progress=100.0, completed_at=_utcnow()
            )
            return self._summary(job, 0.0, message="No properties reference this attribute")

        land_filter.only_missing = options.only_missing
        return await self._run(job, land_filter, options, ensure_year=False)

    async def recalculate_with_zone_adjustments(
        self,
        municipality_id: str,
        effective_year: int,
        options: RecalculationOptions | None = None,
        job_id: str | None = None,
    ) -> RecalculationSummary:
        """Clip oversize lines to their zone minimum, then recalculate."""
        options = options or RecalculationOptions(
            batch_size=self._config.zone_batch_size, include_buildings=False
        )
        await self._require_writable(municipality_id, effective_year)
        job = self._job(job_id, "zone_adjustment", municipality_id, effective_year)
        return await self._run(
            job, LandAssessmentFilter(), options, ensure_year=False, zone_adjust=True
        )

    def start(self, coro_factory, job_id: str) -> str:
        """Run a recalculation in the background and return its job id.

        ``coro_factory`` receives the job id and returns the coroutine to run.
        """
        task = asyncio.create_task(coro_factory(job_id))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return job_id

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background recalculation failed: %s", exc)

    def cancel(self, job_id: str) -> bool:
        return self._progress.request_cancel(job_id)

    def new_job_id(self, municipality_id: str, effective_year: int, kind: str) -> str:
        """Register a pending job so callers can poll it before it starts."""
        job = RecalculationJob(kind=kind, municipality_id=municipality_id, effective_year=effective_year)
        self._progress.create(job)
        return job.job_id

    async def ensure_assessments_for_year(self, municipality_id: str, effective_year: int) -> int:
        """Seed target-year records for properties that only have earlier years."""
        all_ids = await resolve(self._repo.distinct_land_property_ids(municipality_id, None))
        present = await resolve(
            self._repo.distinct_land_property_ids(municipality_id, effective_year)
        )
        created = 0
        for property_id in sorted(all_ids - present):
            land = await resolve(self._repo.list_land_assessments_for_property(property_id))
            buildings = await resolve(self._repo.list_building_assessments_for_property(property_id))
            seeded_land = self._seed_cards(land, effective_year)
            built_cards = {b.card_number for b in buildings if b.effective_year == effective_year}
            seeded_buildings = self._seed_cards(
                [b for b in buildings if b.card_number not in built_cards], effective_year
            )
            if seeded_land:
                await resolve(self._repo.bulk_save_land_assessments(seeded_land))
            if seeded_buildings:
                await resolve(self._repo.bulk_save_building_assessments(seeded_buildings))
            created += len(seeded_land)
        if created:
            logger.info(
                "Created %d land assessment(s) for %s/%d from prior years",
                created, municipality_id, effective_year,
            )
        return created

    @staticmethod
    def _seed_cards(records: list, effective_year: int) -> list:
        seeded = []
        for card_number in sorted({r.card_number for r in records}):
            source = latest_at_or_before(records, card_number, effective_year - 1)
            if source is not None:
                seeded.append(seed_for_year(source, effective_year, MASS_YEAR_CREATION_REASON))
        return seeded

    async def recalculate_property(
        self,
        municipality_id: str,
        property_id: str,
        effective_year: int,
        trigger: CalculationTrigger = CalculationTrigger.MANUAL_RECALC,
    ) -> ParcelAssessment:
        """Synchronously recalculate one property and rebuild its rollup."""
        await self._require_writable(municipality_id, effective_year)
        context = await build_context(self._reference, municipality_id, effective_year)
        land_calc = LandCalculator(context)
        building_calc = BuildingCalculator(context)

        views, waterfronts = await asyncio.gather(
            resolve(self._repo.list_views([property_id])),
            resolve(self._repo.list_waterfronts([property_id])),
        )
        cards = await self._temporal.effective_cards(property_id, effective_year)
        for card_number, (land, building) in cards.items():
            if land is not None:
                record = await self._temporal.get_or_create_land_for_year(
                    property_id, card_number, effective_year
                )
                recalculated = self._recalculate_land(land_calc, record, views, waterfronts)
                await resolve(self._repo.save_land_assessment(recalculated))
            if building is not None:
                record = await self._temporal.get_or_create_building_for_year(
                    property_id, card_number, effective_year
                )
                recalculated_building = await self._recalculate_building(building_calc, record)
                await resolve(self._repo.save_building_assessment(recalculated_building))

        return await self._aggregator.aggregate(
            municipality_id, property_id, effective_year, trigger=trigger
        )

    async def validate_calculations(
        self,
        municipality_id: str,
        effective_year: int,
        sample_size: int | None = None,
    ) -> ValidationReport:
        """Recompute a sample of records and report stored-value drift."""
        sample_size = sample_size or self._config.validation_sample_size
        context = await build_context(self._reference, municipality_id, effective_year)
        land_calc = LandCalculator(context)
        report = ValidationReport(
            municipality_id=municipality_id,
            effective_year=effective_year,
            sample_size=sample_size,
        )

        sample: list[LandAssessment] = []
        cursor = self._repo.iter_land_assessments(
            municipality_id, effective_year, None, sample_size
        )
        async with contextlib.aclosing(cursor):
            async for batch in cursor:
                sample = batch[:sample_size]
                break

        property_ids = sorted({a.property_id for a in sample})
        views, waterfronts = await asyncio.gather(
            resolve(self._repo.list_views(property_ids)),
            resolve(self._repo.list_waterfronts(property_ids)),
        )
        for assessment in sample:
            stored = (
                assessment.calculated_totals.total_assessed_value
                if assessment.calculated_totals
                else 0.0
            )
            recalculated = self._recalculate_land(land_calc, assessment, views, waterfronts)
            fresh = recalculated.calculated_totals.total_assessed_value
            report.checked += 1
            if abs(fresh - stored) > self._config.validation_tolerance:
                report.discrepancies.append(
                    Discrepancy(
                        record_id=assessment.id,
                        property_id=assessment.property_id,
                        card_number=assessment.card_number,
                        stored_value=stored,
                        recalculated_value=fresh,
                        difference=fresh - stored,
                    )
                )
        logger.info(
            "Validated %d record(s) for %s/%d: %d discrepancies",
            report.checked, municipality_id, effective_year, len(report.discrepancies),
        )
        return report

    # ------------------------------------------------------------------
    # Job machinery
    # ------------------------------------------------------------------

    async def _require_writable(self, municipality_id: str, effective_year: int) -> None:
        try:
            await self._billing.require_writable(municipality_id, effective_year)
        except AssessingError as exc:
            self._log_audit(
                "recalculation_rejected",
                municipality_id,
                effective_year,
                {"code": exc.code, "message": exc.message},
            )
            raise

    def _job(
        self, job_id: str | None, kind: str, municipality_id: str, effective_year: int
    ) -> RecalculationJob:
        if job_id is not None:
            existing = self._progress.get(job_id)
            if existing is not None:
                existing.kind = kind
                return existing
            return self._progress.create(
                RecalculationJob(
                    job_id=job_id,
                    kind=kind,
                    municipality_id=municipality_id,
                    effective_year=effective_year,
                )
            )
        return self._progress.create(
            RecalculationJob(kind=kind, municipality_id=municipality_id, effective_year=effective_year)
        )

    async def _run(
        self,
        job: RecalculationJob,
        land_filter: LandAssessmentFilter,
        options: RecalculationOptions,
        ensure_year: bool,
        zone_adjust: bool = False,
    ) -> RecalculationSummary:
        started = time.perf_counter()
        self._progress.update(job.job_id, status=JobStatus.RUNNING, started_at=_utcnow())
        logger.info(
            "Starting %s recalculation job %s for %s/%d",
            job.kind, job.job_id, job.municipality_id, job.effective_year,
        )
        try:
            async with asyncio.timeout(self._config.job_timeout_seconds):
                await self._process(job, land_filter, options, ensure_year, zone_adjust, started)
        except RecalculationCancelledError:
            logger.warning("Recalculation job %s cancelled after %d records", job.job_id, job.processed)
            self._progress.update(job.job_id, status=JobStatus.CANCELLED, completed_at=_utcnow())
            return self._summary(job, started, message="Cancelled")
        except TimeoutError:
            message = f"Timed out after {self._config.job_timeout_seconds} seconds"
            logger.error("Recalculation job %s: %s", job.job_id, message)
            self._progress.update(
                job.job_id, status=JobStatus.FAILED, error=message, completed_at=_utcnow()
            )
            self._log_audit("recalculation_failed", job.municipality_id, job.effective_year, {
                "job_id": job.job_id, "error": message,
            })
            raise
        except Exception as exc:
            logger.exception("Recalculation job %s failed", job.job_id)
            self._progress.update(
                job.job_id, status=JobStatus.FAILED, error=str(exc), completed_at=_utcnow()
            )
            self._log_audit("recalculation_failed", job.municipality_id, job.effective_year, {
                "job_id": job.job_id, "error": str(exc), "processed": job.processed,
            })
            raise

        self._progress.update(
            job.job_id,
            status=JobStatus.COMPLETED,
            progress=100.0,
            eta_seconds=0.0,
            completed_at=_utcnow(),
        )
        summary = self._summary(job, started)
        logger.info(
            "Completed job %s: %d processed, %d updated, %d errors in %.2fs",
            job.job_id, summary.processed, summary.updated, summary.errors, summary.duration_seconds,
        )
        self._log_audit("recalculation_completed", job.municipality_id, job.effective_year, {
            "job_id": job.job_id,
            "kind": job.kind,
            "processed": summary.processed,
            "updated": summary.updated,
            "errors": summary.errors,
        })
        return summary

    async def _process(
        self,
        job: RecalculationJob,
        land_filter: LandAssessmentFilter,
        options: RecalculationOptions,
        ensure_year: bool,
        zone_adjust: bool,
        started: float,
    ) -> None:
        municipality_id, year = job.municipality_id, job.effective_year
        batch_size = options.batch_size or self._config.batch_size

        if ensure_year:
            job.records_created = await self.ensure_assessments_for_year(municipality_id, year)

        context = await build_context(self._reference, municipality_id, year)
        land_calc = LandCalculator(context)
        job.total = await resolve(self._repo.count_land_assessments(municipality_id, year, land_filter))
        self._progress.update(job.job_id, total=job.total)

        touched: set[str] = set()
        cursor = self._repo.iter_land_assessments(municipality_id, year, land_filter, batch_size)
        async with contextlib.aclosing(cursor):
            async for batch in cursor:
                self._check_cancel(job)
                if not batch:
                    continue
                await self._process_land_batch(job, batch, land_calc, context, options, zone_adjust)
                touched.update(a.property_id for a in batch)
                self._report(job, started)

        if options.include_buildings:
            touched.update(await self._process_buildings(job, context, options, batch_size))

        if options.save and options.rebuild_parcels:
            for property_id in sorted(touched):
                self._check_cancel(job)
                await self._aggregator.aggregate(
                    municipality_id, property_id, year, trigger=CalculationTrigger.MASS_RECALCULATION
                )
                job.parcels_rebuilt += 1

    async def _process_land_batch(
        self,
        job: RecalculationJob,
        batch: list[LandAssessment],
        land_calc: LandCalculator,
        context: CalculationContext,
        options: RecalculationOptions,
        zone_adjust: bool,
    ) -> None:
        property_ids = sorted({a.property_id for a in batch})
        views, waterfronts = await asyncio.gather(
            resolve(self._repo.list_views(property_ids)),
            resolve(self._repo.list_waterfronts(property_ids)),
        )
        views_by_property: dict[str, list[PropertyView]] = defaultdict(list)
        for view in views:
            views_by_property[view.property_id].append(view)
        waterfronts_by_property: dict[str, list[PropertyWaterfront]] = defaultdict(list)
        for waterfront in waterfronts:
            waterfronts_by_property[waterfront.property_id].append(waterfront)

        to_write: list[LandAssessment] = []
        for assessment in batch:
            try:
                source = assessment
                if options.force_clear:
                    source = assessment.model_copy(
                        update={
                            "land_use_lines": [
                                line.model_copy(update={"calculated": None})
                                for line in assessment.land_use_lines
                            ],
                            "calculated_totals": None,
                        }
                    )
                if zone_adjust:
                    adjustment = apply_zone_minimum(
                        source.land_use_lines, context.zone(source.zone_id)
                    )
                    if adjustment.adjusted:
                        source = source.model_copy(update={"land_use_lines": adjustment.lines})
                        job.zone_adjustments += 1
                        if adjustment.excess_acreage_created:
                            job.excess_acreage_created += 1
                        job.details.append({
                            "property_id": assessment.property_id,
                            "card_number": assessment.card_number,
                            "excess_acreage": round(adjustment.excess_acreage, 3),
                            "excess_line_created": adjustment.excess_acreage_created,
                        })
                recalculated = self._recalculate_land(
                    land_calc,
                    source,
                    views_by_property[assessment.property_id],
                    waterfronts_by_property[assessment.property_id],
                )
            except Exception as exc:
                job.errors_count += 1
                job.errors.append(
                    RecordError(
                        record_id=assessment.id,
                        property_id=assessment.property_id,
                        card_number=assessment.card_number,
                        error=str(exc),
                    )
                )
                logger.exception(
                    "Failed to recalculate land assessment %s (property %s)",
                    assessment.id, assessment.property_id,
                )
                continue

            job.processed += 1
            changed = _land_values(recalculated) != _land_values(assessment)
            if changed:
                job.updated += 1
            if changed or options.force_clear or assessment.last_calculated is None:
                to_write.append(recalculated)

        if options.save and to_write:
            await resolve(self._repo.bulk_save_land_assessments(to_write))

    async def _process_buildings(
        self,
        job: RecalculationJob,
        context: CalculationContext,
        options: RecalculationOptions,
        batch_size: int,
    ) -> set[str]:
        building_calc = BuildingCalculator(context)
        touched: set[str] = set()
        cursor = self._repo.iter_building_assessments(
            job.municipality_id, job.effective_year, None, batch_size
        )
        async with contextlib.aclosing(cursor):
            async for batch in cursor:
                self._check_cancel(job)
                to_write: list[BuildingAssessment] = []
                for building in batch:
                    try:
                        recalculated = await self._recalculate_building(building_calc, building)
                    except Exception as exc:
                        job.errors_count += 1
                        job.errors.append(
                            RecordError(
                                record_id=building.id,
                                property_id=building.property_id,
                                card_number=building.card_number,
                                error=str(exc),
                            )
                        )
                        logger.exception("Failed to recalculate building assessment %s", building.id)
                        continue
                    job.buildings_processed += 1
                    touched.add(building.property_id)
                    changed = (
                        recalculated.building_value != building.building_value
                        or recalculated.effective_area != building.effective_area
                        or building.calculation_details is None
                    )
                    if changed:
                        job.buildings_updated += 1
                    if changed or options.force_clear or building.last_calculated is None:
                        to_write.append(recalculated)
                if options.save and to_write:
                    await resolve(self._repo.bulk_save_building_assessments(to_write))
        return touched

    def _recalculate_land(
        self,
        land_calc: LandCalculator,
        assessment: LandAssessment,
        views: list[PropertyView],
        waterfronts: list[PropertyWaterfront],
    ) -> LandAssessment:
        result = land_calc.calculate_card(assessment, views, waterfronts)
        now = _utcnow()
        return assessment.model_copy(
            update={
                "land_use_lines": result.lines,
                "calculated_totals": result.totals,
                "last_calculated": now,
                "updated_at": now,
            }
        )

    async def _recalculate_building(
        self, building_calc: BuildingCalculator, building: BuildingAssessment
    ) -> BuildingAssessment:
        area = building.effective_area
        if self._areas is not None:
            sketched = await resolve(
                self._areas.get_effective_area(building.property_id, building.card_number)
            )
            if sketched is not None:
                area = sketched
        source = building.model_copy(update={"effective_area": area})
        calc = building_calc.calculate(source)
        now = _utcnow()
        return source.model_copy(
            update={
                "calculation_details": calc,
                "building_value": calc.building_value,
                "last_calculated": now,
                "updated_at": now,
            }
        )

    def _check_cancel(self, job: RecalculationJob) -> None:
        if job.cancel_requested:
            raise RecalculationCancelledError(f"Job {job.job_id} was cancelled")

    def _report(self, job: RecalculationJob, started: float) -> None:
        elapsed = max(time.perf_counter() - started, 1e-9)
        done = job.processed + job.errors_count
        rate = job.processed / elapsed
        remaining = max(job.total - done, 0)
        self._progress.update(
            job.job_id,
            progress=round(done / job.total * 100, 2) if job.total else 100.0,
            rate=round(rate, 2),
            eta_seconds=round(remaining / rate, 2) if rate > 0 else None,
        )

    def _summary(self, job: RecalculationJob, started: float, message: str = "") -> RecalculationSummary:
        duration = time.perf_counter() - started if started else 0.0
        return RecalculationSummary(
            job_id=job.job_id,
            municipality_id=job.municipality_id,
            effective_year=job.effective_year,
            status=job.status,
            total=job.total,
            processed=job.processed,
            updated=job.updated,
            errors=job.errors_count,
            error_details=job.errors[: self._config.error_detail_limit],
            buildings_processed=job.buildings_processed,
            buildings_updated=job.buildings_updated,
            parcels_rebuilt=job.parcels_rebuilt,
            records_created=job.records_created,
            zone_adjustments=job.zone_adjustments,
            excess_acreage_created=job.excess_acreage_created,
            details=job.details,
            duration_seconds=round(duration, 3),
            rate=round(job.processed / duration, 2) if duration > 0 else 0.0,
            message=message,
        )

    def _log_audit(
        self, action: str, municipality_id: str, effective_year: int, details: dict
    ) -> None:
        if self._audit is None:
            return
        self._audit.log(
            AuditEvent(
                actor="recalculation",
                action=action,
                resource=f"municipality:{municipality_id}",
                municipality_id=municipality_id,
                effective_year=effective_year,
                details=details,
            )
        )

    async def _filter_for_change(
        self, municipality_id: str, change_type: ChangeType, change_id: str | None
    ) -> LandAssessmentFilter | None:
        """Translate a change into a record filter; None means nothing is affected."""
        if change_type == ChangeType.ZONE:
            return LandAssessmentFilter(zone_id=change_id)
        if change_type == ChangeType.NEIGHBORHOOD:
            return LandAssessmentFilter(neighborhood_id=change_id)
        if change_type == ChangeType.CURRENT_USE:
            return LandAssessmentFilter(land_use_type=change_id)
        if change_type == ChangeType.TAXATION_CATEGORY:
            return LandAssessmentFilter(taxation_category=change_id)
        if change_type == ChangeType.VIEW_ATTRIBUTE:
            views = await resolve(self._repo.list_views_referencing(municipality_id, change_id or ""))
            if not views:
                return None
            return LandAssessmentFilter(property_ids=sorted({v.property_id for v in views}))
        return LandAssessmentFilter()
