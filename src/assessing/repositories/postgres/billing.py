"""PostgreSQL billing period repository."""

from __future__ import annotations

from sqlalchemy import select

from assessing.billing.models import BillingPeriod
from assessing.db.engine import DatabaseManager
from assessing.db.models import BillingPeriodRow


class PostgresBillingRepository:
    """Postgres-backed billing period storage."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_billing_period(self, municipality_id: str, year: int) -> BillingPeriod | None:
        async with self._db.session() as db:
            row = await db.get(BillingPeriodRow, (municipality_id, year))
            if row is None:
                return None
            return self._row_to_period(row)

    async def save_billing_period(self, period: BillingPeriod) -> BillingPeriod:
        async with self._db.session() as db:
            existing = await db.get(BillingPeriodRow, (period.municipality_id, period.year))
            if existing:
                existing.is_final_billed = period.is_final_billed
                existing.final_billing_date = period.final_billing_date
                existing.is_locked = period.is_locked
                existing.locked_by = period.locked_by
                existing.locked_at = period.locked_at
            else:
                db.add(
                    BillingPeriodRow(
                        municipality_id=period.municipality_id,
                        year=period.year,
                        is_final_billed=period.is_final_billed,
                        final_billing_date=period.final_billing_date,
                        is_locked=period.is_locked,
                        locked_by=period.locked_by,
                        locked_at=period.locked_at,
                    )
                )
            await db.commit()
        return period

    async def list_billing_periods(self, municipality_id: str) -> list[BillingPeriod]:
        async with self._db.session() as db:
            result = await db.execute(
                select(BillingPeriodRow)
                .where(BillingPeriodRow.municipality_id == municipality_id)
                .order_by(BillingPeriodRow.year)
            )
            return [self._row_to_period(r) for r in result.scalars().all()]

    @staticmethod
    def _row_to_period(row: BillingPeriodRow) -> BillingPeriod:
        return BillingPeriod(
            municipality_id=row.municipality_id,
            year=row.year,
            is_final_billed=row.is_final_billed,
            final_billing_date=row.final_billing_date,
            is_locked=row.is_locked,
            locked_by=row.locked_by,
            locked_at=row.locked_at,
        )
