"""Initial schema: reference data, assessments, billing periods and parcels.

Revision ID: 0001
Revises:
Create Date: 2026-10-16

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # -- Reference data --
    op.create_table(
        "reference_records",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("municipality_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_reference_records_muni_kind", "reference_records", ["municipality_id", "kind"]
    )

    op.create_table(
        "calculation_configs",
        sa.Column("municipality_id", sa.String(64), primary_key=True),
        sa.Column("effective_year", sa.Integer, primary_key=True),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # -- Billing periods --
    op.create_table(
        "billing_periods",
        sa.Column("municipality_id", sa.String(64), primary_key=True),
        sa.Column("year", sa.Integer, primary_key=True),
        sa.Column("is_final_billed", sa.Boolean, server_default=sa.false()),
        sa.Column("final_billing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_locked", sa.Boolean, server_default=sa.false()),
        sa.Column("locked_by", sa.String(128), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
    )

    # -- Land assessments --
    op.create_table(
        "land_assessments",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("municipality_id", sa.String(64), nullable=False),
        sa.Column("property_id", sa.String(64), nullable=False),
        sa.Column("card_number", sa.Integer, server_default="1"),
        sa.Column("effective_year", sa.Integer, nullable=False),
        sa.Column("zone_id", sa.String(64), nullable=True),
        sa.Column("neighborhood_id", sa.String(64), nullable=True),
        sa.Column("taxation_category", sa.String(64), nullable=True),
        sa.Column("last_calculated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "property_id", "card_number", "effective_year", name="uq_land_assessment_card_year"
        ),
    )
    op.create_index(
        "ix_land_assessments_muni_year", "land_assessments", ["municipality_id", "effective_year"]
    )
    op.create_index("ix_land_assessments_zone", "land_assessments", ["zone_id"])
    op.create_index("ix_land_assessments_neighborhood", "land_assessments", ["neighborhood_id"])

    # -- Building assessments --
    op.create_table(
        "building_assessments",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("municipality_id", sa.String(64), nullable=False),
        sa.Column("property_id", sa.String(64), nullable=False),
        sa.Column("card_number", sa.Integer, server_default="1"),
        sa.Column("effective_year", sa.Integer, nullable=False),
        sa.Column("building_value", sa.Float, server_default="0"),
        sa.Column("last_calculated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "property_id", "card_number", "effective_year", name="uq_building_assessment_card_year"
        ),
    )
    op.create_index(
        "ix_building_assessments_muni_year",
        "building_assessments",
        ["municipality_id", "effective_year"],
    )

    # -- Views, waterfronts, features --
    for table in ("property_views", "property_waterfronts", "property_features"):
        op.create_table(
            table,
            sa.Column("id", sa.String(64), primary_key=True),
            sa.Column("municipality_id", sa.String(64), nullable=False),
            sa.Column("property_id", sa.String(64), nullable=False),
            sa.Column("card_number", sa.Integer, server_default="1"),
            sa.Column("is_active", sa.Boolean, server_default=sa.true()),
            sa.Column("data", JSONB, nullable=False),
        )
        op.create_index(f"ix_{table}_property", table, ["property_id"])
    op.create_index("ix_property_views_muni", "property_views", ["municipality_id"])

    # -- Parcel rollups --
    op.create_table(
        "parcel_assessments",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("municipality_id", sa.String(64), nullable=False),
        sa.Column("property_id", sa.String(64), nullable=False),
        sa.Column("effective_year", sa.Integer, nullable=False),
        sa.Column("total_assessed_value", sa.Float, server_default="0"),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("property_id", "effective_year", name="uq_parcel_assessment_year"),
    )
    op.create_index(
        "ix_parcel_assessments_muni_year",
        "parcel_assessments",
        ["municipality_id", "effective_year"],
    )


def downgrade() -> None:
    op.drop_table("parcel_assessments")
    op.drop_table("property_features")
    op.drop_table("property_waterfronts")
    op.drop_table("property_views")
    op.drop_table("building_assessments")
    op.drop_table("land_assessments")
    op.drop_table("billing_periods")
    op.drop_table("calculation_configs")
    op.drop_table("reference_records")
