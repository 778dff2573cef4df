"""PostgreSQL repository for reference tables and calculation configs."""

from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, select

from assessing.db.engine import DatabaseManager
from assessing.db.models import CalculationConfigRow, ReferenceRecordRow
from assessing.reference.defaults import CalculationDefaults
from assessing.reference.models import (
    AcreageDiscountSettings,
    AttributeFactor,
    BuildingCode,
    BuildingFeatureCode,
    CalculationConfig,
    CurrentUseCategory,
    LadderTier,
    ViewAttribute,
    WaterfrontAttribute,
    Zone,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ZONE = "zone"
LADDER_TIER = "ladder_tier"
ATTRIBUTE = "attribute"
VIEW_ATTRIBUTE = "view_attribute"
WATERFRONT_ATTRIBUTE = "waterfront_attribute"
CURRENT_USE = "current_use"
ACREAGE_DISCOUNT = "acreage_discount"
BUILDING_CODE = "building_code"
FEATURE_CODE = "feature_code"


def _row_id(municipality_id: str, kind: str, key: str) -> str:
    return f"{municipality_id}:{kind}:{key}"


class PostgresReferenceRepository:
    """Postgres-backed reference data, one generic table keyed by kind."""

    def __init__(self, db: DatabaseManager, defaults: CalculationDefaults | None = None) -> None:
        self._db = db
        self._defaults = defaults

    # -- writes --

    async def _put(self, municipality_id: str, kind: str, key: str, record: BaseModel) -> None:
        row_id = _row_id(municipality_id, kind, key)
        data = record.model_dump(mode="json")
        async with self._db.session() as db:
            existing = await db.get(ReferenceRecordRow, row_id)
            if existing:
                existing.data = data
            else:
                db.add(
                    ReferenceRecordRow(
                        id=row_id, municipality_id=municipality_id, kind=kind, data=data
                    )
                )
            await db.commit()

    async def add_zone(self, zone: Zone) -> Zone:
        await self._put(zone.municipality_id, ZONE, zone.id, zone)
        return zone

    async def set_ladder(self, municipality_id: str, zone_id: str, tiers: list[LadderTier]) -> None:
        """Replace every tier of ``zone_id`` in one transaction."""
        prefix = _row_id(municipality_id, LADDER_TIER, f"{zone_id}:")
        async with self._db.session() as db:
            await db.execute(
                delete(ReferenceRecordRow).where(ReferenceRecordRow.id.startswith(prefix))
            )
            for tier in tiers:
                db.add(
                    ReferenceRecordRow(
                        id=f"{prefix}{tier.acreage:g}",
                        municipality_id=municipality_id,
                        kind=LADDER_TIER,
                        data=tier.model_dump(mode="json"),
                    )
                )
            await db.commit()

    async def add_attribute_factor(
        self, municipality_id: str, attribute: AttributeFactor
    ) -> AttributeFactor:
        await self._put(municipality_id, ATTRIBUTE, attribute.id, attribute)
        return attribute

    async def add_view_attribute(self, municipality_id: str, attribute: ViewAttribute) -> ViewAttribute:
        await self._put(municipality_id, VIEW_ATTRIBUTE, attribute.id, attribute)
        return attribute

    async def add_waterfront_attribute(
        self, municipality_id: str, attribute: WaterfrontAttribute
    ) -> WaterfrontAttribute:
        await self._put(municipality_id, WATERFRONT_ATTRIBUTE, attribute.id, attribute)
        return attribute

    async def add_current_use_category(
        self, municipality_id: str, category: CurrentUseCategory
    ) -> CurrentUseCategory:
        await self._put(municipality_id, CURRENT_USE, category.code, category)
        return category

    async def set_acreage_discount_settings(
        self, municipality_id: str, settings: AcreageDiscountSettings
    ) -> None:
        await self._put(municipality_id, ACREAGE_DISCOUNT, "settings", settings)

    async def add_building_code(self, municipality_id: str, code: BuildingCode) -> BuildingCode:
        await self._put(municipality_id, BUILDING_CODE, code.id, code)
        return code

    async def add_building_feature_code(
        self, municipality_id: str, code: BuildingFeatureCode
    ) -> BuildingFeatureCode:
        await self._put(municipality_id, FEATURE_CODE, code.id, code)
        return code

    async def save_calculation_config(self, config: CalculationConfig) -> CalculationConfig:
        async with self._db.session() as db:
            existing = await db.get(
                CalculationConfigRow, (config.municipality_id, config.effective_year)
            )
            if existing:
                existing.data = config.model_dump(mode="json")
            else:
                db.add(
                    CalculationConfigRow(
                        municipality_id=config.municipality_id,
                        effective_year=config.effective_year,
                        data=config.model_dump(mode="json"),
                        created_at=config.created_at,
                    )
                )
            await db.commit()
        return config

    # -- reads --

    async def _list(self, municipality_id: str, kind: str, model: type[M]) -> list[M]:
        async with self._db.session() as db:
            result = await db.execute(
                select(ReferenceRecordRow)
                .where(
                    ReferenceRecordRow.municipality_id == municipality_id,
                    ReferenceRecordRow.kind == kind,
                )
                .order_by(ReferenceRecordRow.id)
            )
            return [model.model_validate(r.data) for r in result.scalars().all()]

    async def list_zones(self, municipality_id: str) -> list[Zone]:
        return await self._list(municipality_id, ZONE, Zone)

    async def list_ladder_tiers(self, municipality_id: str) -> list[LadderTier]:
        return await self._list(municipality_id, LADDER_TIER, LadderTier)

    async def list_attribute_factors(self, municipality_id: str) -> list[AttributeFactor]:
        return await self._list(municipality_id, ATTRIBUTE, AttributeFactor)

    async def list_view_attributes(self, municipality_id: str) -> list[ViewAttribute]:
        return await self._list(municipality_id, VIEW_ATTRIBUTE, ViewAttribute)

    async def list_waterfront_attributes(self, municipality_id: str) -> list[WaterfrontAttribute]:
        return await self._list(municipality_id, WATERFRONT_ATTRIBUTE, WaterfrontAttribute)

    async def list_current_use_categories(self, municipality_id: str) -> list[CurrentUseCategory]:
        return await self._list(municipality_id, CURRENT_USE, CurrentUseCategory)

    async def get_acreage_discount_settings(
        self, municipality_id: str
    ) -> AcreageDiscountSettings | None:
        async with self._db.session() as db:
            row = await db.get(
                ReferenceRecordRow, _row_id(municipality_id, ACREAGE_DISCOUNT, "settings")
            )
            if row is not None:
                return AcreageDiscountSettings.model_validate(row.data)
        if self._defaults is not None:
            return self._defaults.acreage_discount()
        return None

    async def list_building_codes(self, municipality_id: str) -> list[BuildingCode]:
        return await self._list(municipality_id, BUILDING_CODE, BuildingCode)

    async def list_building_feature_codes(self, municipality_id: str) -> list[BuildingFeatureCode]:
        return await self._list(municipality_id, FEATURE_CODE, BuildingFeatureCode)

    async def get_or_create_calculation_config(
        self, municipality_id: str, effective_year: int
    ) -> CalculationConfig:
        async with self._db.session() as db:
            row = await db.get(CalculationConfigRow, (municipality_id, effective_year))
            if row is not None:
                return CalculationConfig.model_validate(row.data)
        if self._defaults is not None:
            config = self._defaults.calculation_config(municipality_id, effective_year)
        else:
            config = CalculationConfig(municipality_id=municipality_id, effective_year=effective_year)
        logger.info("Creating calculation config for %s/%d", municipality_id, effective_year)
        return await self.save_calculation_config(config)
