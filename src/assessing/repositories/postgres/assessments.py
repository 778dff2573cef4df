"""PostgreSQL repository for temporal land, building and parcel assessments."""

from __future__ import annotations

import logging
from typing import AsyncIterator, TypeVar

from sqlalchemy import func, or_, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from assessing.building.models import BuildingAssessment
from assessing.db.engine import DatabaseManager
from assessing.db.models import (
    BuildingAssessmentRow,
    LandAssessmentRow,
    ParcelAssessmentRow,
    PropertyFeatureRow,
    PropertyViewRow,
    PropertyWaterfrontRow,
)
from assessing.land.models import (
    LandAssessment,
    LandAssessmentFilter,
    PropertyView,
    PropertyWaterfront,
)
from assessing.parcel.models import ParcelAssessment, PropertyFeature

logger = logging.getLogger(__name__)

_Key = tuple[str, int, int]
_R = TypeVar("_R", LandAssessmentRow, BuildingAssessmentRow)


def land_use_summary(assessment: LandAssessment) -> str:
    """``|FARM|RES|``: the distinct land-use types of a card, pipe delimited."""
    types = sorted({line.land_use_type for line in assessment.land_use_lines})
    return "|" + "".join(f"{t}|" for t in types)


class PostgresAssessmentRepository:
    """Postgres-backed assessment storage.

    Streaming cursors page with ``id > last_id ORDER BY id LIMIT n`` so each
    batch is a short query and memory stays bounded by the batch size.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Land
    # ------------------------------------------------------------------

    async def get_land_assessment(
        self, property_id: str, card_number: int, effective_year: int
    ) -> LandAssessment | None:
        async with self._db.session() as db:
            row = await self._land_row_by_key(db, property_id, card_number, effective_year)
            if row is None:
                return None
            return self._row_to_land(row)

    async def list_land_assessments_for_property(self, property_id: str) -> list[LandAssessment]:
        async with self._db.session() as db:
            result = await db.execute(
                select(LandAssessmentRow)
                .where(LandAssessmentRow.property_id == property_id)
                .order_by(LandAssessmentRow.card_number, LandAssessmentRow.effective_year)
            )
            return [self._row_to_land(r) for r in result.scalars().all()]

    async def save_land_assessment(self, assessment: LandAssessment) -> LandAssessment:
        async with self._db.session() as db:
            existing = await self._rows_by_key(db, LandAssessmentRow, [assessment])
            stored = self._put_land(db, assessment, existing)
            await db.commit()
        return stored

    async def bulk_save_land_assessments(self, assessments: list[LandAssessment]) -> int:
        """Write a whole batch with one key lookup and one flush."""
        if not assessments:
            return 0
        async with self._db.session() as db:
            existing = await self._rows_by_key(db, LandAssessmentRow, assessments)
            for assessment in assessments:
                self._put_land(db, assessment, existing)
            await db.commit()
        return len(assessments)

    async def count_land_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        filter: LandAssessmentFilter | None = None,
    ) -> int:
        query = self._land_query(municipality_id, effective_year, filter).subquery()
        async with self._db.session() as db:
            result = await db.execute(select(func.count()).select_from(query))
            return result.scalar_one()

    async def iter_land_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        filter: LandAssessmentFilter | None = None,
        batch_size: int = 500,
    ) -> AsyncIterator[list[LandAssessment]]:
        last_id = ""
        while True:
            async with self._db.session() as db:
                result = await db.execute(
                    self._land_query(municipality_id, effective_year, filter)
                    .where(LandAssessmentRow.id > last_id)
                    .order_by(LandAssessmentRow.id)
                    .limit(batch_size)
                )
                rows = result.scalars().all()
            if not rows:
                return
            last_id = rows[-1].id
            yield [self._row_to_land(r) for r in rows]

    async def distinct_land_property_ids(
        self, municipality_id: str, effective_year: int | None = None
    ) -> set[str]:
        query = select(LandAssessmentRow.property_id).where(
            LandAssessmentRow.municipality_id == municipality_id
        )
        if effective_year is not None:
            query = query.where(LandAssessmentRow.effective_year == effective_year)
        async with self._db.session() as db:
            result = await db.execute(query.distinct())
            return set(result.scalars().all())

    @staticmethod
    def _land_query(municipality_id: str, effective_year: int, filter: LandAssessmentFilter | None):
        query = select(LandAssessmentRow).where(
            LandAssessmentRow.municipality_id == municipality_id,
            LandAssessmentRow.effective_year == effective_year,
        )
        if filter is None:
            return query
        if filter.zone_id is not None:
            query = query.where(LandAssessmentRow.zone_id == filter.zone_id)
        if filter.neighborhood_id is not None:
            query = query.where(LandAssessmentRow.neighborhood_id == filter.neighborhood_id)
        if filter.taxation_category is not None:
            query = query.where(LandAssessmentRow.taxation_category == filter.taxation_category)
        if filter.property_ids is not None:
            query = query.where(LandAssessmentRow.property_id.in_(filter.property_ids))
        if filter.only_missing:
            query = query.where(LandAssessmentRow.last_calculated.is_(None))
        if filter.land_use_type is not None:
            query = query.where(
                LandAssessmentRow.land_use_types.contains(
                    f"|{filter.land_use_type}|", autoescape=True
                )
            )
        return query

    @staticmethod
    async def _land_row_by_key(
        db: AsyncSession, property_id: str, card_number: int, effective_year: int
    ) -> LandAssessmentRow | None:
        result = await db.execute(
            select(LandAssessmentRow).where(
                LandAssessmentRow.property_id == property_id,
                LandAssessmentRow.card_number == card_number,
                LandAssessmentRow.effective_year == effective_year,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _rows_by_key(db: AsyncSession, row_cls: type[_R], records: list) -> dict[_Key, _R]:
        """Load the stored rows for every (property, card, year) in ``records``."""
        keys = {(r.property_id, r.card_number, r.effective_year) for r in records}
        result = await db.execute(
            select(row_cls).where(
                tuple_(row_cls.property_id, row_cls.card_number, row_cls.effective_year).in_(
                    list(keys)
                )
            )
        )
        return {
            (row.property_id, row.card_number, row.effective_year): row
            for row in result.scalars().all()
        }

    @staticmethod
    def _put_land(
        db: AsyncSession,
        assessment: LandAssessment,
        existing: dict[_Key, LandAssessmentRow],
    ) -> LandAssessment:
        stored = assessment.model_copy(deep=True)
        row = existing.get(stored.key)
        if row is None:
            row = LandAssessmentRow(
                id=stored.id,
                municipality_id=stored.municipality_id,
                property_id=stored.property_id,
                card_number=stored.card_number,
                effective_year=stored.effective_year,
            )
            db.add(row)
            existing[stored.key] = row
        stored.id = row.id
        row.zone_id = stored.zone_id
        row.neighborhood_id = stored.neighborhood_id
        row.taxation_category = stored.taxation_category
        row.land_use_types = land_use_summary(stored)
        row.last_calculated = stored.last_calculated
        row.data = stored.model_dump(mode="json")
        row.updated_at = stored.updated_at
        return stored

    # ------------------------------------------------------------------
    # Buildings
    # ------------------------------------------------------------------

    async def get_building_assessment(
        self, property_id: str, card_number: int, effective_year: int
    ) -> BuildingAssessment | None:
        async with self._db.session() as db:
            row = await self._building_row_by_key(db, property_id, card_number, effective_year)
            if row is None:
                return None
            return self._row_to_building(row)

    async def list_building_assessments_for_property(
        self, property_id: str
    ) -> list[BuildingAssessment]:
        async with self._db.session() as db:
            result = await db.execute(
                select(BuildingAssessmentRow)
                .where(BuildingAssessmentRow.property_id == property_id)
                .order_by(BuildingAssessmentRow.card_number, BuildingAssessmentRow.effective_year)
            )
            return [self._row_to_building(r) for r in result.scalars().all()]

    async def save_building_assessment(self, assessment: BuildingAssessment) -> BuildingAssessment:
        async with self._db.session() as db:
            existing = await self._rows_by_key(db, BuildingAssessmentRow, [assessment])
            stored = self._put_building(db, assessment, existing)
            await db.commit()
        return stored

    async def bulk_save_building_assessments(self, assessments: list[BuildingAssessment]) -> int:
        if not assessments:
            return 0
        async with self._db.session() as db:
            existing = await self._rows_by_key(db, BuildingAssessmentRow, assessments)
            for assessment in assessments:
                self._put_building(db, assessment, existing)
            await db.commit()
        return len(assessments)

    async def iter_building_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        property_ids: list[str] | None = None,
        batch_size: int = 500,
    ) -> AsyncIterator[list[BuildingAssessment]]:
        last_id = ""
        while True:
            query = select(BuildingAssessmentRow).where(
                BuildingAssessmentRow.municipality_id == municipality_id,
                BuildingAssessmentRow.effective_year == effective_year,
                BuildingAssessmentRow.id > last_id,
            )
            if property_ids is not None:
                query = query.where(BuildingAssessmentRow.property_id.in_(property_ids))
            async with self._db.session() as db:
                result = await db.execute(
                    query.order_by(BuildingAssessmentRow.id).limit(batch_size)
                )
                rows = result.scalars().all()
            if not rows:
                return
            last_id = rows[-1].id
            yield [self._row_to_building(r) for r in rows]

    @staticmethod
    async def _building_row_by_key(
        db: AsyncSession, property_id: str, card_number: int, effective_year: int
    ) -> BuildingAssessmentRow | None:
        result = await db.execute(
            select(BuildingAssessmentRow).where(
                BuildingAssessmentRow.property_id == property_id,
                BuildingAssessmentRow.card_number == card_number,
                BuildingAssessmentRow.effective_year == effective_year,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _put_building(
        db: AsyncSession,
        assessment: BuildingAssessment,
        existing: dict[_Key, BuildingAssessmentRow],
    ) -> BuildingAssessment:
        stored = assessment.model_copy(deep=True)
        row = existing.get(stored.key)
        if row is None:
            row = BuildingAssessmentRow(
                id=stored.id,
                municipality_id=stored.municipality_id,
                property_id=stored.property_id,
                card_number=stored.card_number,
                effective_year=stored.effective_year,
            )
            db.add(row)
            existing[stored.key] = row
        stored.id = row.id
        row.building_value = stored.building_value
        row.last_calculated = stored.last_calculated
        row.data = stored.model_dump(mode="json")
        row.updated_at = stored.updated_at
        return stored

    # ------------------------------------------------------------------
    # Views, waterfronts, features
    # ------------------------------------------------------------------

    async def list_views(self, property_ids: list[str]) -> list[PropertyView]:
        if not property_ids:
            return []
        async with self._db.session() as db:
            result = await db.execute(
                select(PropertyViewRow).where(PropertyViewRow.property_id.in_(property_ids))
            )
            return [PropertyView.model_validate(r.data) for r in result.scalars().all()]

    async def list_views_referencing(
        self, municipality_id: str, attribute_id: str
    ) -> list[PropertyView]:
        async with self._db.session() as db:
            result = await db.execute(
                select(PropertyViewRow).where(
                    PropertyViewRow.municipality_id == municipality_id,
                    PropertyViewRow.is_active.is_(True),
                    or_(
                        PropertyViewRow.subject_id == attribute_id,
                        PropertyViewRow.width_id == attribute_id,
                        PropertyViewRow.distance_id == attribute_id,
                        PropertyViewRow.depth_id == attribute_id,
                    ),
                )
            )
            return [PropertyView.model_validate(r.data) for r in result.scalars().all()]

    async def save_view(self, view: PropertyView) -> PropertyView:
        async with self._db.session() as db:
            row = await db.get(PropertyViewRow, view.id)
            if row is None:
                row = PropertyViewRow(
                    id=view.id,
                    municipality_id=view.municipality_id,
                    property_id=view.property_id,
                )
                db.add(row)
            row.card_number = view.card_number
            row.is_active = view.is_active
            row.subject_id = view.subject_id
            row.width_id = view.width_id
            row.distance_id = view.distance_id
            row.depth_id = view.depth_id
            row.data = view.model_dump(mode="json")
            await db.commit()
        return view

    async def list_waterfronts(self, property_ids: list[str]) -> list[PropertyWaterfront]:
        if not property_ids:
            return []
        async with self._db.session() as db:
            result = await db.execute(
                select(PropertyWaterfrontRow).where(
                    PropertyWaterfrontRow.property_id.in_(property_ids)
                )
            )
            return [PropertyWaterfront.model_validate(r.data) for r in result.scalars().all()]

    async def save_waterfront(self, waterfront: PropertyWaterfront) -> PropertyWaterfront:
        async with self._db.session() as db:
            existing = await db.get(PropertyWaterfrontRow, waterfront.id)
            if existing:
                existing.card_number = waterfront.card_number
                existing.is_active = waterfront.is_active
                existing.data = waterfront.model_dump(mode="json")
            else:
                db.add(
                    PropertyWaterfrontRow(
                        id=waterfront.id,
                        municipality_id=waterfront.municipality_id,
                        property_id=waterfront.property_id,
                        card_number=waterfront.card_number,
                        is_active=waterfront.is_active,
                        data=waterfront.model_dump(mode="json"),
                    )
                )
            await db.commit()
        return waterfront

    async def list_features(self, property_id: str) -> list[PropertyFeature]:
        async with self._db.session() as db:
            result = await db.execute(
                select(PropertyFeatureRow).where(PropertyFeatureRow.property_id == property_id)
            )
            return [PropertyFeature.model_validate(r.data) for r in result.scalars().all()]

    async def save_feature(self, feature: PropertyFeature) -> PropertyFeature:
        async with self._db.session() as db:
            existing = await db.get(PropertyFeatureRow, feature.id)
            if existing:
                existing.card_number = feature.card_number
                existing.is_active = feature.is_active
                existing.data = feature.model_dump(mode="json")
            else:
                db.add(
                    PropertyFeatureRow(
                        id=feature.id,
                        municipality_id=feature.municipality_id,
                        property_id=feature.property_id,
                        card_number=feature.card_number,
                        is_active=feature.is_active,
                        data=feature.model_dump(mode="json"),
                    )
                )
            await db.commit()
        return feature

    # ------------------------------------------------------------------
    # Parcels
    # ------------------------------------------------------------------

    async def get_parcel_assessment(
        self, property_id: str, effective_year: int
    ) -> ParcelAssessment | None:
        async with self._db.session() as db:
            row = await self._parcel_row_by_key(db, property_id, effective_year)
            if row is None:
                return None
            return ParcelAssessment.model_validate(row.data)

    async def save_parcel_assessment(self, parcel: ParcelAssessment) -> ParcelAssessment:
        stored = parcel.model_copy(deep=True)
        async with self._db.session() as db:
            existing = await self._parcel_row_by_key(db, parcel.property_id, parcel.effective_year)
            if existing:
                stored.id = existing.id
                existing.total_assessed_value = stored.parcel_totals.total_assessed_value
                existing.data = stored.model_dump(mode="json")
                existing.calculated_at = stored.calculated_at
            else:
                db.add(
                    ParcelAssessmentRow(
                        id=stored.id,
                        municipality_id=stored.municipality_id,
                        property_id=stored.property_id,
                        effective_year=stored.effective_year,
                        total_assessed_value=stored.parcel_totals.total_assessed_value,
                        data=stored.model_dump(mode="json"),
                        calculated_at=stored.calculated_at,
                    )
                )
            await db.commit()
        return stored

    @staticmethod
    async def _parcel_row_by_key(
        db: AsyncSession, property_id: str, effective_year: int
    ) -> ParcelAssessmentRow | None:
        result = await db.execute(
            select(ParcelAssessmentRow).where(
                ParcelAssessmentRow.property_id == property_id,
                ParcelAssessmentRow.effective_year == effective_year,
            )
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_land(row: LandAssessmentRow) -> LandAssessment:
        assessment = LandAssessment.model_validate(row.data)
        assessment.id = row.id
        return assessment

    @staticmethod
    def _row_to_building(row: BuildingAssessmentRow) -> BuildingAssessment:
        building = BuildingAssessment.model_validate(row.data)
        building.id = row.id
        return building
