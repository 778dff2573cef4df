"""Lookup columns for selective recalculation.

Views get their attribute ids as columns and land assessments get a
``|TYPE|TYPE|`` summary of their land-use lines, so view-attribute and
current-use changes select affected rows in SQL.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-16

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_VIEW_COLUMNS = ("subject_id", "width_id", "distance_id", "depth_id")


def upgrade() -> None:
    op.add_column(
        "land_assessments",
        sa.Column("land_use_types", sa.String(512), nullable=False, server_default="|"),
    )
    for column in _VIEW_COLUMNS:
        op.add_column("property_views", sa.Column(column, sa.String(64), nullable=True))
        op.create_index(f"ix_property_views_{column.removesuffix('_id')}", "property_views", [column])

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(
            sa.text(
                "UPDATE property_views SET "
                "subject_id = data->>'subject_id', width_id = data->>'width_id', "
                "distance_id = data->>'distance_id', depth_id = data->>'depth_id'"
            )
        )
        op.execute(
            sa.text(
                "UPDATE land_assessments SET land_use_types = '|' || COALESCE(("
                "SELECT string_agg(DISTINCT line->>'land_use_type', '|' "
                "ORDER BY line->>'land_use_type') "
                "FROM jsonb_array_elements(data->'land_use_lines') AS line"
                ") || '|', '')"
            )
        )


def downgrade() -> None:
    for column in _VIEW_COLUMNS:
        op.drop_index(f"ix_property_views_{column.removesuffix('_id')}", table_name="property_views")
        op.drop_column("property_views", column)
    op.drop_column("land_assessments", "land_use_types")
