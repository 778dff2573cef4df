"""Immutable calculation context holding one municipality-year of reference data.

A context is built once per job or request and passed into every
calculator call, so calculators never reach into global lookups.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from assessing.core.types import AttributeKind
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
from assessing.repositories import resolve

if TYPE_CHECKING:
    from assessing.repositories.protocols import ReferenceDataReader

logger = logging.getLogger(__name__)


class CalculationContext(BaseModel):
    """Reference data for one (municipality, year), indexed for lookup."""

    model_config = {"frozen": True}

    municipality_id: str
    effective_year: int
    zones: dict[str, Zone] = Field(default_factory=dict)
    ladders: dict[str, list[LadderTier]] = Field(default_factory=dict)
    attributes: dict[str, AttributeFactor] = Field(default_factory=dict)
    view_attributes: dict[str, ViewAttribute] = Field(default_factory=dict)
    waterfront_attributes: dict[str, WaterfrontAttribute] = Field(default_factory=dict)
    current_use_categories: dict[str, CurrentUseCategory] = Field(default_factory=dict)
    acreage_discount: AcreageDiscountSettings | None = None
    building_codes: dict[str, BuildingCode] = Field(default_factory=dict)
    feature_codes: dict[str, BuildingFeatureCode] = Field(default_factory=dict)
    calculation_config: CalculationConfig

    @classmethod
    def from_reference(
        cls,
        municipality_id: str,
        effective_year: int,
        calculation_config: CalculationConfig,
        zones: list[Zone] | None = None,
        ladder_tiers: list[LadderTier] | None = None,
        attributes: list[AttributeFactor] | None = None,
        view_attributes: list[ViewAttribute] | None = None,
        waterfront_attributes: list[WaterfrontAttribute] | None = None,
        current_use_categories: list[CurrentUseCategory] | None = None,
        acreage_discount: AcreageDiscountSettings | None = None,
        building_codes: list[BuildingCode] | None = None,
        feature_codes: list[BuildingFeatureCode] | None = None,
    ) -> CalculationContext:
        ladders: dict[str, list[LadderTier]] = {}
        for tier in ladder_tiers or []:
            ladders.setdefault(tier.zone_id, []).append(tier)
        for zone_id, tiers in ladders.items():
            # Duplicate acreages keep the last tier seen.
            unique = {t.acreage: t for t in tiers}
            ladders[zone_id] = sorted(unique.values(), key=lambda t: t.acreage)

        return cls(
            municipality_id=municipality_id,
            effective_year=effective_year,
            zones={z.id: z for z in zones or []},
            ladders=ladders,
            attributes={a.id: a for a in attributes or []},
            view_attributes={v.id: v for v in view_attributes or []},
            waterfront_attributes={w.id: w for w in waterfront_attributes or []},
            current_use_categories={c.code: c for c in current_use_categories or []},
            acreage_discount=acreage_discount,
            building_codes={b.id: b for b in building_codes or []},
            feature_codes={f.id: f for f in feature_codes or []},
            calculation_config=calculation_config,
        )

    # -- lookups ----------------------------------------------------------

    def zone(self, zone_id: str | None) -> Zone | None:
        if zone_id is None:
            return None
        return self.zones.get(zone_id)

    def ladder(self, zone_id: str) -> list[LadderTier]:
        return self.ladders.get(zone_id, [])

    def attribute_factor(self, kind: AttributeKind, attribute_id: str | None) -> float:
        """Factor for an attribute id, 1.0 when unset or unknown."""
        if not attribute_id:
            return 1.0
        attribute = self.attributes.get(attribute_id)
        if attribute is None or attribute.kind != kind:
            logger.warning(
                "Missing %s attribute %r for municipality %s; using factor 1.0",
                kind.value, attribute_id, self.municipality_id,
            )
            return 1.0
        return attribute.factor

    def topography_factor(self, topography: str | None) -> float:
        """Topography is matched by display text, case-insensitively."""
        if not topography:
            return 1.0
        wanted = topography.strip().lower()
        for attribute in self.attributes.values():
            if attribute.kind != AttributeKind.TOPOGRAPHY:
                continue
            if attribute.display_text.lower() == wanted or attribute.code.lower() == wanted:
                return attribute.factor
        logger.warning("Unknown topography %r; using factor 1.0", topography)
        return 1.0

    def view_factor(self, attribute_id: str | None) -> float:
        if not attribute_id:
            return 1.0
        attribute = self.view_attributes.get(attribute_id)
        if attribute is None:
            logger.warning("Missing view attribute %r; using factor 1.0", attribute_id)
            return 1.0
        return attribute.factor

    def waterfront_factor(self, attribute_id: str | None) -> float:
        if not attribute_id:
            return 1.0
        attribute = self.waterfront_attributes.get(attribute_id)
        if attribute is None:
            logger.warning("Missing waterfront attribute %r; using factor 1.0", attribute_id)
            return 1.0
        return attribute.factor

    def current_use_category(self, code: str | None) -> CurrentUseCategory | None:
        if not code:
            return None
        return self.current_use_categories.get(code)

    def building_code(self, base_type: str | None) -> BuildingCode | None:
        """Resolve a building code by id, falling back to its code string."""
        if not base_type:
            return None
        found = self.building_codes.get(base_type)
        if found is not None:
            return found
        for code in self.building_codes.values():
            if code.code == base_type:
                return code
        return None

    def feature_code(self, feature_id: str | None) -> BuildingFeatureCode | None:
        if not feature_id:
            return None
        return self.feature_codes.get(feature_id)


async def build_context(
    reader: ReferenceDataReader,
    municipality_id: str,
    effective_year: int,
) -> CalculationContext:
    """Load every reference table concurrently and index it."""
    (
        zones,
        tiers,
        attributes,
        view_attributes,
        waterfront_attributes,
        categories,
        discount,
        building_codes,
        feature_codes,
        config,
    ) = await asyncio.gather(
        resolve(reader.list_zones(municipality_id)),
        resolve(reader.list_ladder_tiers(municipality_id)),
        resolve(reader.list_attribute_factors(municipality_id)),
        resolve(reader.list_view_attributes(municipality_id)),
        resolve(reader.list_waterfront_attributes(municipality_id)),
        resolve(reader.list_current_use_categories(municipality_id)),
        resolve(reader.get_acreage_discount_settings(municipality_id)),
        resolve(reader.list_building_codes(municipality_id)),
        resolve(reader.list_building_feature_codes(municipality_id)),
        resolve(reader.get_or_create_calculation_config(municipality_id, effective_year)),
    )
    logger.info(
        "Built calculation context for %s/%d: %d zones, %d ladder tiers",
        municipality_id, effective_year, len(zones), len(tiers),
    )
    return CalculationContext.from_reference(
        municipality_id=municipality_id,
        effective_year=effective_year,
        calculation_config=config,
        zones=zones,
        ladder_tiers=tiers,
        attributes=attributes,
        view_attributes=view_attributes,
        waterfront_attributes=waterfront_attributes,
        current_use_categories=categories,
        acreage_discount=discount,
        building_codes=building_codes,
        feature_codes=feature_codes,
    )
