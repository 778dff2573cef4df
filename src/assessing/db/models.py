"""SQLAlchemy ORM models for all persistent tables.

Assessment rows keep their lookup keys in real columns and the full record
in a JSON payload, so the pydantic model stays the single source of shape.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from assessing.db.base import Base


def _jsonb() -> type:
    """Return JSONB for Postgres, plain JSON for SQLite."""
    return JSON().with_variant(PG_JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class ReferenceRecordRow(Base):
    """One row of any reference table (zone, ladder tier, attribute, ...)."""

    __tablename__ = "reference_records"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    municipality_id: Mapped[str] = mapped_column(String(64))
    kind: Mapped[str] = mapped_column(String(32))
    data: Mapped[dict] = mapped_column(_jsonb())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_reference_records_muni_kind", "municipality_id", "kind"),
    )


class CalculationConfigRow(Base):
    __tablename__ = "calculation_configs"

    municipality_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    effective_year: Mapped[int] = mapped_column(Integer, primary_key=True)
    data: Mapped[dict] = mapped_column(_jsonb())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ---------------------------------------------------------------------------
# Billing periods
# ---------------------------------------------------------------------------


class BillingPeriodRow(Base):
    __tablename__ = "billing_periods"

    municipality_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    is_final_billed: Mapped[bool] = mapped_column(Boolean, default=False)
    final_billing_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    locked_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Land & building assessments
# ---------------------------------------------------------------------------


class LandAssessmentRow(Base):
    __tablename__ = "land_assessments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    municipality_id: Mapped[str] = mapped_column(String(64))
    property_id: Mapped[str] = mapped_column(String(64))
    card_number: Mapped[int] = mapped_column(Integer, default=1)
    effective_year: Mapped[int] = mapped_column(Integer)
    zone_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    neighborhood_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    taxation_category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # "|FARM|RES|": every land-use type on the card, for selective recalculation.
    land_use_types: Mapped[str] = mapped_column(String(512), default="|")
    last_calculated: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    data: Mapped[dict] = mapped_column(_jsonb())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "property_id", "card_number", "effective_year", name="uq_land_assessment_card_year"
        ),
        Index("ix_land_assessments_muni_year", "municipality_id", "effective_year"),
        Index("ix_land_assessments_zone", "zone_id"),
        Index("ix_land_assessments_neighborhood", "neighborhood_id"),
    )


class BuildingAssessmentRow(Base):
    __tablename__ = "building_assessments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    municipality_id: Mapped[str] = mapped_column(String(64))
    property_id: Mapped[str] = mapped_column(String(64))
    card_number: Mapped[int] = mapped_column(Integer, default=1)
    effective_year: Mapped[int] = mapped_column(Integer)
    building_value: Mapped[float] = mapped_column(Float, default=0.0)
    last_calculated: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    data: Mapped[dict] = mapped_column(_jsonb())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "property_id", "card_number", "effective_year", name="uq_building_assessment_card_year"
        ),
        Index("ix_building_assessments_muni_year", "municipality_id", "effective_year"),
    )


# ---------------------------------------------------------------------------
# Views, waterfronts, features
# ---------------------------------------------------------------------------


class PropertyViewRow(Base):
    __tablename__ = "property_views"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    municipality_id: Mapped[str] = mapped_column(String(64))
    property_id: Mapped[str] = mapped_column(String(64))
    card_number: Mapped[int] = mapped_column(Integer, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    subject_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    width_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    distance_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    depth_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    data: Mapped[dict] = mapped_column(_jsonb())

    __table_args__ = (
        Index("ix_property_views_property", "property_id"),
        Index("ix_property_views_muni", "municipality_id"),
        Index("ix_property_views_subject", "subject_id"),
        Index("ix_property_views_width", "width_id"),
        Index("ix_property_views_distance", "distance_id"),
        Index("ix_property_views_depth", "depth_id"),
    )


class PropertyWaterfrontRow(Base):
    __tablename__ = "property_waterfronts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    municipality_id: Mapped[str] = mapped_column(String(64))
    property_id: Mapped[str] = mapped_column(String(64))
    card_number: Mapped[int] = mapped_column(Integer, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    data: Mapped[dict] = mapped_column(_jsonb())

    __table_args__ = (
        Index("ix_property_waterfronts_property", "property_id"),
    )


class PropertyFeatureRow(Base):
    __tablename__ = "property_features"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    municipality_id: Mapped[str] = mapped_column(String(64))
    property_id: Mapped[str] = mapped_column(String(64))
    card_number: Mapped[int] = mapped_column(Integer, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    data: Mapped[dict] = mapped_column(_jsonb())

    __table_args__ = (
        Index("ix_property_features_property", "property_id"),
    )


# ---------------------------------------------------------------------------
# Parcel rollups
# ---------------------------------------------------------------------------


class ParcelAssessmentRow(Base):
    __tablename__ = "parcel_assessments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    municipality_id: Mapped[str] = mapped_column(String(64))
    property_id: Mapped[str] = mapped_column(String(64))
    effective_year: Mapped[int] = mapped_column(Integer)
    total_assessed_value: Mapped[float] = mapped_column(Float, default=0.0)
    data: Mapped[dict] = mapped_column(_jsonb())
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("property_id", "effective_year", name="uq_parcel_assessment_year"),
        Index("ix_parcel_assessments_muni_year", "municipality_id", "effective_year"),
    )
