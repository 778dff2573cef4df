"""In-memory stores for reference data, assessments and billing periods.

Records are copied on the way in and on the way out so callers never share
mutable state with the store, matching how a database round-trip behaves.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from assessing.billing.models import BillingPeriod
from assessing.building.models import BuildingAssessment
from assessing.land.models import (
    LandAssessment,
    LandAssessmentFilter,
    PropertyView,
    PropertyWaterfront,
)
from assessing.parcel.models import ParcelAssessment, PropertyFeature
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


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class ReferenceDataStore:
    """In-memory reference tables keyed by municipality."""

    def __init__(self, defaults: CalculationDefaults | None = None) -> None:
        self._defaults = defaults
        self._zones: dict[str, dict[str, Zone]] = {}
        self._tiers: dict[str, list[LadderTier]] = {}
        self._attributes: dict[str, dict[str, AttributeFactor]] = {}
        self._view_attributes: dict[str, dict[str, ViewAttribute]] = {}
        self._waterfront_attributes: dict[str, dict[str, WaterfrontAttribute]] = {}
        self._categories: dict[str, dict[str, CurrentUseCategory]] = {}
        self._discounts: dict[str, AcreageDiscountSettings] = {}
        self._building_codes: dict[str, dict[str, BuildingCode]] = {}
        self._feature_codes: dict[str, dict[str, BuildingFeatureCode]] = {}
        self._configs: dict[tuple[str, int], CalculationConfig] = {}

    # -- writes --

    def add_zone(self, zone: Zone) -> Zone:
        self._zones.setdefault(zone.municipality_id, {})[zone.id] = zone
        return zone

    def set_ladder(self, municipality_id: str, zone_id: str, tiers: list[LadderTier]) -> None:
        kept = [t for t in self._tiers.get(municipality_id, []) if t.zone_id != zone_id]
        self._tiers[municipality_id] = kept + list(tiers)

    def add_attribute_factor(self, municipality_id: str, attribute: AttributeFactor) -> AttributeFactor:
        self._attributes.setdefault(municipality_id, {})[attribute.id] = attribute
        return attribute

    def add_view_attribute(self, municipality_id: str, attribute: ViewAttribute) -> ViewAttribute:
        self._view_attributes.setdefault(municipality_id, {})[attribute.id] = attribute
        return attribute

    def add_waterfront_attribute(
        self, municipality_id: str, attribute: WaterfrontAttribute
    ) -> WaterfrontAttribute:
        self._waterfront_attributes.setdefault(municipality_id, {})[attribute.id] = attribute
        return attribute

    def add_current_use_category(
        self, municipality_id: str, category: CurrentUseCategory
    ) -> CurrentUseCategory:
        self._categories.setdefault(municipality_id, {})[category.code] = category
        return category

    def set_acreage_discount_settings(
        self, municipality_id: str, settings: AcreageDiscountSettings
    ) -> None:
        self._discounts[municipality_id] = settings

    def add_building_code(self, municipality_id: str, code: BuildingCode) -> BuildingCode:
        self._building_codes.setdefault(municipality_id, {})[code.id] = code
        return code

    def add_building_feature_code(
        self, municipality_id: str, code: BuildingFeatureCode
    ) -> BuildingFeatureCode:
        self._feature_codes.setdefault(municipality_id, {})[code.id] = code
        return code

    def save_calculation_config(self, config: CalculationConfig) -> CalculationConfig:
        self._configs[(config.municipality_id, config.effective_year)] = config
        return config

    # -- reads --

    def list_zones(self, municipality_id: str) -> list[Zone]:
        return list(self._zones.get(municipality_id, {}).values())

    def list_ladder_tiers(self, municipality_id: str) -> list[LadderTier]:
        return list(self._tiers.get(municipality_id, []))

    def list_attribute_factors(self, municipality_id: str) -> list[AttributeFactor]:
        return list(self._attributes.get(municipality_id, {}).values())

    def list_view_attributes(self, municipality_id: str) -> list[ViewAttribute]:
        return list(self._view_attributes.get(municipality_id, {}).values())

    def list_waterfront_attributes(self, municipality_id: str) -> list[WaterfrontAttribute]:
        return list(self._waterfront_attributes.get(municipality_id, {}).values())

    def list_current_use_categories(self, municipality_id: str) -> list[CurrentUseCategory]:
        return list(self._categories.get(municipality_id, {}).values())

    def get_acreage_discount_settings(self, municipality_id: str) -> AcreageDiscountSettings | None:
        if municipality_id in self._discounts:
            return self._discounts[municipality_id]
        if self._defaults is not None:
            return self._defaults.acreage_discount()
        return None

    def list_building_codes(self, municipality_id: str) -> list[BuildingCode]:
        return list(self._building_codes.get(municipality_id, {}).values())

    def list_building_feature_codes(self, municipality_id: str) -> list[BuildingFeatureCode]:
        return list(self._feature_codes.get(municipality_id, {}).values())

    def get_or_create_calculation_config(
        self, municipality_id: str, effective_year: int
    ) -> CalculationConfig:
        key = (municipality_id, effective_year)
        if key not in self._configs:
            if self._defaults is not None:
                config = self._defaults.calculation_config(municipality_id, effective_year)
            else:
                config = CalculationConfig(
                    municipality_id=municipality_id, effective_year=effective_year
                )
            self._configs[key] = config
        return self._configs[key]


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------


class AssessmentStore:
    """In-memory temporal assessment storage."""

    def __init__(self) -> None:
        self._land: dict[tuple[str, int, int], LandAssessment] = {}
        self._buildings: dict[tuple[str, int, int], BuildingAssessment] = {}
        self._views: dict[str, PropertyView] = {}
        self._waterfronts: dict[str, PropertyWaterfront] = {}
        self._features: dict[str, PropertyFeature] = {}
        self._parcels: dict[tuple[str, int], ParcelAssessment] = {}

    # -- land --

    def get_land_assessment(
        self, property_id: str, card_number: int, effective_year: int
    ) -> LandAssessment | None:
        found = self._land.get((property_id, card_number, effective_year))
        return found.model_copy(deep=True) if found else None

    def list_land_assessments_for_property(self, property_id: str) -> list[LandAssessment]:
        return [a.model_copy(deep=True) for a in self._land.values() if a.property_id == property_id]

    def save_land_assessment(self, assessment: LandAssessment) -> LandAssessment:
        existing = self._land.get(assessment.key)
        stored = assessment.model_copy(deep=True)
        if existing is not None:
            stored.id = existing.id
        self._land[assessment.key] = stored
        return stored.model_copy(deep=True)

    def bulk_save_land_assessments(self, assessments: list[LandAssessment]) -> int:
        for assessment in assessments:
            self.save_land_assessment(assessment)
        return len(assessments)

    def _matching_land(
        self,
        municipality_id: str,
        effective_year: int,
        filter: LandAssessmentFilter | None,
    ) -> list[LandAssessment]:
        return sorted(
            (
                a
                for a in self._land.values()
                if a.municipality_id == municipality_id
                and a.effective_year == effective_year
                and (filter is None or filter.matches(a))
            ),
            key=lambda a: a.id,
        )

    def count_land_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        filter: LandAssessmentFilter | None = None,
    ) -> int:
        return len(self._matching_land(municipality_id, effective_year, filter))

    async def iter_land_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        filter: LandAssessmentFilter | None = None,
        batch_size: int = 500,
    ) -> AsyncIterator[list[LandAssessment]]:
        ids = [a.key for a in self._matching_land(municipality_id, effective_year, filter)]
        for start in range(0, len(ids), batch_size):
            batch = [
                self._land[key].model_copy(deep=True)
                for key in ids[start : start + batch_size]
                if key in self._land
            ]
            yield batch
            await asyncio.sleep(0)

    def distinct_land_property_ids(
        self, municipality_id: str, effective_year: int | None = None
    ) -> set[str]:
        return {
            a.property_id
            for a in self._land.values()
            if a.municipality_id == municipality_id
            and (effective_year is None or a.effective_year == effective_year)
        }

    # -- buildings --

    def get_building_assessment(
        self, property_id: str, card_number: int, effective_year: int
    ) -> BuildingAssessment | None:
        found = self._buildings.get((property_id, card_number, effective_year))
        return found.model_copy(deep=True) if found else None

    def list_building_assessments_for_property(self, property_id: str) -> list[BuildingAssessment]:
        return [
            b.model_copy(deep=True) for b in self._buildings.values() if b.property_id == property_id
        ]

    def save_building_assessment(self, assessment: BuildingAssessment) -> BuildingAssessment:
        existing = self._buildings.get(assessment.key)
        stored = assessment.model_copy(deep=True)
        if existing is not None:
            stored.id = existing.id
        self._buildings[assessment.key] = stored
        return stored.model_copy(deep=True)

    def bulk_save_building_assessments(self, assessments: list[BuildingAssessment]) -> int:
        for assessment in assessments:
            self.save_building_assessment(assessment)
        return len(assessments)

    async def iter_building_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        property_ids: list[str] | None = None,
        batch_size: int = 500,
    ) -> AsyncIterator[list[BuildingAssessment]]:
        wanted = set(property_ids) if property_ids is not None else None
        keys = [
            b.key
            for b in sorted(self._buildings.values(), key=lambda b: b.id)
            if b.municipality_id == municipality_id
            and b.effective_year == effective_year
            and (wanted is None or b.property_id in wanted)
        ]
        for start in range(0, len(keys), batch_size):
            yield [self._buildings[k].model_copy(deep=True) for k in keys[start : start + batch_size]]
            await asyncio.sleep(0)

    # -- views, waterfronts, features --

    def list_views(self, property_ids: list[str]) -> list[PropertyView]:
        wanted = set(property_ids)
        return [v.model_copy() for v in self._views.values() if v.property_id in wanted]

    def list_views_referencing(self, municipality_id: str, attribute_id: str) -> list[PropertyView]:
        return [
            v.model_copy()
            for v in self._views.values()
            if v.municipality_id == municipality_id
            and v.is_active
            and attribute_id in v.attribute_ids
        ]

    def save_view(self, view: PropertyView) -> PropertyView:
        self._views[view.id] = view.model_copy()
        return view

    def list_waterfronts(self, property_ids: list[str]) -> list[PropertyWaterfront]:
        wanted = set(property_ids)
        return [w.model_copy() for w in self._waterfronts.values() if w.property_id in wanted]

    def save_waterfront(self, waterfront: PropertyWaterfront) -> PropertyWaterfront:
        self._waterfronts[waterfront.id] = waterfront.model_copy()
        return waterfront

    def list_features(self, property_id: str) -> list[PropertyFeature]:
        return [f.model_copy() for f in self._features.values() if f.property_id == property_id]

    def save_feature(self, feature: PropertyFeature) -> PropertyFeature:
        self._features[feature.id] = feature.model_copy()
        return feature

    # -- parcels --

    def get_parcel_assessment(self, property_id: str, effective_year: int) -> ParcelAssessment | None:
        found = self._parcels.get((property_id, effective_year))
        return found.model_copy(deep=True) if found else None

    def save_parcel_assessment(self, parcel: ParcelAssessment) -> ParcelAssessment:
        existing = self._parcels.get((parcel.property_id, parcel.effective_year))
        stored = parcel.model_copy(deep=True)
        if existing is not None:
            stored.id = existing.id
        self._parcels[(parcel.property_id, parcel.effective_year)] = stored
        return stored.model_copy(deep=True)


# ---------------------------------------------------------------------------
# Billing periods
# ---------------------------------------------------------------------------


class BillingPeriodStore:
    """In-memory billing period storage."""

    def __init__(self) -> None:
        self._periods: dict[tuple[str, int], BillingPeriod] = {}

    def get_billing_period(self, municipality_id: str, year: int) -> BillingPeriod | None:
        found = self._periods.get((municipality_id, year))
        return found.model_copy() if found else None

    def save_billing_period(self, period: BillingPeriod) -> BillingPeriod:
        self._periods[(period.municipality_id, period.year)] = period.model_copy()
        return period

    def list_billing_periods(self, municipality_id: str) -> list[BillingPeriod]:
        return sorted(
            (p.model_copy() for p in self._periods.values() if p.municipality_id == municipality_id),
            key=lambda p: p.year,
        )
