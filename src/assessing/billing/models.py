"""Pydantic models for billing periods."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class BillingPeriod(BaseModel):
    """Final-billing status of one municipality's tax year."""

    municipality_id: str
    year: int
    is_final_billed: bool = False
    final_billing_date: datetime | None = None
    is_locked: bool = False
    locked_by: str | None = None
    locked_at: datetime | None = None


class BillingRedirect(BaseModel):
    year: int
    url: str
    message: str


class BillingValidation(BaseModel):
    """Result of checking whether a tax year may be modified."""

    allowed: bool
    municipality_id: str
    year: int
    current_year: int
    code: str | None = None
    reason: str = ""
    redirect_year: int | None = None
    redirect: BillingRedirect | None = None
    final_billing_date: datetime | None = None
    is_historical_year: bool = False
