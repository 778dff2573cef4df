"""Protocol definitions for all repository interfaces.

Each protocol mirrors the public methods of the corresponding in-memory
store, so sync (in-memory) and async (SQL) implementations satisfy the same
interface. Callers wrap every call in ``resolve()``. Streaming cursors are
async generators in every implementation.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable

from assessing.billing.models import BillingPeriod
from assessing.building.models import BuildingAssessment
from assessing.land.models import (
    LandAssessment,
    LandAssessmentFilter,
    PropertyView,
    PropertyWaterfront,
)
from assessing.parcel.models import ParcelAssessment, PropertyFeature
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


@runtime_checkable
class ReferenceDataReader(Protocol):
    """Protocol for reference data lookups."""

    def list_zones(self, municipality_id: str) -> list[Zone]: ...

    def list_ladder_tiers(self, municipality_id: str) -> list[LadderTier]: ...

    def list_attribute_factors(self, municipality_id: str) -> list[AttributeFactor]: ...

    def list_view_attributes(self, municipality_id: str) -> list[ViewAttribute]: ...

    def list_waterfront_attributes(self, municipality_id: str) -> list[WaterfrontAttribute]: ...

    def list_current_use_categories(self, municipality_id: str) -> list[CurrentUseCategory]: ...

    def get_acreage_discount_settings(
        self, municipality_id: str
    ) -> AcreageDiscountSettings | None: ...

    def list_building_codes(self, municipality_id: str) -> list[BuildingCode]: ...

    def list_building_feature_codes(self, municipality_id: str) -> list[BuildingFeatureCode]: ...

    def get_or_create_calculation_config(
        self, municipality_id: str, effective_year: int
    ) -> CalculationConfig: ...


@runtime_checkable
class AssessmentRepository(Protocol):
    """Protocol for temporal land, building and parcel assessment storage."""

    # -- land --

    def get_land_assessment(
        self, property_id: str, card_number: int, effective_year: int
    ) -> LandAssessment | None: ...

    def list_land_assessments_for_property(self, property_id: str) -> list[LandAssessment]: ...

    def save_land_assessment(self, assessment: LandAssessment) -> LandAssessment: ...

    def bulk_save_land_assessments(self, assessments: list[LandAssessment]) -> int: ...

    def count_land_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        filter: LandAssessmentFilter | None = None,
    ) -> int: ...

    def iter_land_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        filter: LandAssessmentFilter | None = None,
        batch_size: int = 500,
    ) -> AsyncIterator[list[LandAssessment]]: ...

    def distinct_land_property_ids(
        self, municipality_id: str, effective_year: int | None = None
    ) -> set[str]: ...

    # -- buildings --

    def get_building_assessment(
        self, property_id: str, card_number: int, effective_year: int
    ) -> BuildingAssessment | None: ...

    def list_building_assessments_for_property(
        self, property_id: str
    ) -> list[BuildingAssessment]: ...

    def save_building_assessment(self, assessment: BuildingAssessment) -> BuildingAssessment: ...

    def bulk_save_building_assessments(self, assessments: list[BuildingAssessment]) -> int: ...

    def iter_building_assessments(
        self,
        municipality_id: str,
        effective_year: int,
        property_ids: list[str] | None = None,
        batch_size: int = 500,
    ) -> AsyncIterator[list[BuildingAssessment]]: ...

    # -- views, waterfronts, features --

    def list_views(self, property_ids: list[str]) -> list[PropertyView]: ...

    def list_views_referencing(
        self, municipality_id: str, attribute_id: str
    ) -> list[PropertyView]: ...

    def save_view(self, view: PropertyView) -> PropertyView: ...

    def list_waterfronts(self, property_ids: list[str]) -> list[PropertyWaterfront]: ...

    def save_waterfront(self, waterfront: PropertyWaterfront) -> PropertyWaterfront: ...

    def list_features(self, property_id: str) -> list[PropertyFeature]: ...

    def save_feature(self, feature: PropertyFeature) -> PropertyFeature: ...

    # -- parcels --

    def get_parcel_assessment(
        self, property_id: str, effective_year: int
    ) -> ParcelAssessment | None: ...

    def save_parcel_assessment(self, parcel: ParcelAssessment) -> ParcelAssessment: ...


@runtime_checkable
class BillingRepository(Protocol):
    """Protocol for billing period storage."""

    def get_billing_period(self, municipality_id: str, year: int) -> BillingPeriod | None: ...

    def save_billing_period(self, period: BillingPeriod) -> BillingPeriod: ...

    def list_billing_periods(self, municipality_id: str) -> list[BillingPeriod]: ...


@runtime_checkable
class AreaProvider(Protocol):
    """Supplies effective building area computed from sketches.

    Implementations may be sync or async; callers go through resolve().
    """

    def get_effective_area(self, property_id: str, card_number: int) -> float | None: ...
