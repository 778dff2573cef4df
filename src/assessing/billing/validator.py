"""Billing period validator.

Every write path asks this validator before touching a tax year:

1. future years are never editable,
2. the current tax year is always editable,
3. past years are editable unless final billing (or an administrator lock)
   has closed them, in which case callers are redirected to the current year.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from assessing.billing.models import BillingPeriod, BillingRedirect, BillingValidation
from assessing.core.config import BillingConfig
from assessing.core.errors import BillingPeriodLockedError
from assessing.repositories import resolve
from assessing.repositories.protocols import BillingRepository

logger = logging.getLogger(__name__)

FUTURE_YEAR_MODIFICATION = "FUTURE_YEAR_MODIFICATION"
FINAL_BILLING_COMPLETED = "FINAL_BILLING_COMPLETED"
YEAR_LOCKED = "YEAR_LOCKED"


class BillingPeriodValidator:
    """Decides whether a (municipality, year) may be written to."""

    def __init__(
        self,
        repository: BillingRepository,
        config: BillingConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repo = repository
        self._config = config or BillingConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def current_year(self) -> int:
        if self._config.current_year is not None:
            return self._config.current_year
        return self._clock().year

    def _redirect(self, year: int, message: str) -> BillingRedirect:
        return BillingRedirect(
            year=year,
            url=self._config.redirect_url_template.format(year=year),
            message=message,
        )

    async def validate(self, municipality_id: str, year: int) -> BillingValidation:
        current = self.current_year

        if year > current:
            message = (
                f"Cannot modify {year}: it is a future tax year. "
                f"Changes can be made to {current}."
            )
            return BillingValidation(
                allowed=False,
                municipality_id=municipality_id,
                year=year,
                current_year=current,
                code=FUTURE_YEAR_MODIFICATION,
                reason=message,
                redirect_year=current,
                redirect=self._redirect(current, message),
            )

        if year == current:
            return BillingValidation(
                allowed=True,
                municipality_id=municipality_id,
                year=year,
                current_year=current,
            )

        period: BillingPeriod | None = await resolve(
            self._repo.get_billing_period(municipality_id, year)
        )
        if period is not None and period.is_final_billed:
            message = (
                f"Final billing for {year} has been completed. "
                f"Changes must be made in the {current} tax year."
            )
            return BillingValidation(
                allowed=False,
                municipality_id=municipality_id,
                year=year,
                current_year=current,
                code=FINAL_BILLING_COMPLETED,
                reason=message,
                redirect_year=current,
                redirect=self._redirect(current, message),
                final_billing_date=period.final_billing_date,
            )
        if period is not None and period.is_locked:
            message = f"Tax year {year} is locked. Changes must be made in the {current} tax year."
            return BillingValidation(
                allowed=False,
                municipality_id=municipality_id,
                year=year,
                current_year=current,
                code=YEAR_LOCKED,
                reason=message,
                redirect_year=current,
                redirect=self._redirect(current, message),
            )

        return BillingValidation(
            allowed=True,
            municipality_id=municipality_id,
            year=year,
            current_year=current,
            reason=f"{year} is a historical year that has not been final billed",
            is_historical_year=True,
        )

    async def require_writable(self, municipality_id: str, year: int) -> BillingValidation:
        """Validate and raise BillingPeriodLockedError when the year is closed."""
        result = await self.validate(municipality_id, year)
        if not result.allowed:
            logger.warning(
                "Rejected write to %s/%d: %s", municipality_id, year, result.code
            )
            raise BillingPeriodLockedError(
                code=result.code or FINAL_BILLING_COMPLETED,
                message=result.reason,
                redirect_year=result.redirect_year,
                details={
                    "year": year,
                    "current_year": result.current_year,
                    "final_billing_date": (
                        result.final_billing_date.isoformat() if result.final_billing_date else None
                    ),
                    "redirect": result.redirect.model_dump() if result.redirect else None,
                },
            )
        if result.is_historical_year:
            logger.info("Write to historical year %s/%d", municipality_id, year)
        return result

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def mark_final_billed(
        self, municipality_id: str, year: int, billed_at: datetime | None = None
    ) -> BillingPeriod:
        period = await self._get_or_new(municipality_id, year)
        period.is_final_billed = True
        period.final_billing_date = billed_at or self._clock()
        await resolve(self._repo.save_billing_period(period))
        logger.info("Marked %s/%d final billed", municipality_id, year)
        return period

    async def lock_year(self, municipality_id: str, year: int, actor: str) -> BillingPeriod:
        period = await self._get_or_new(municipality_id, year)
        period.is_locked = True
        period.locked_by = actor
        period.locked_at = self._clock()
        await resolve(self._repo.save_billing_period(period))
        logger.info("Locked %s/%d by %s", municipality_id, year, actor)
        return period

    async def is_year_locked(self, municipality_id: str, year: int) -> bool:
        period = await resolve(self._repo.get_billing_period(municipality_id, year))
        return period is not None and (period.is_locked or period.is_final_billed)

    async def _get_or_new(self, municipality_id: str, year: int) -> BillingPeriod:
        period = await resolve(self._repo.get_billing_period(municipality_id, year))
        if period is None:
            period = BillingPeriod(municipality_id=municipality_id, year=year)
        return period
