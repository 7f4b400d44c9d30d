from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, BeforeValidator, Field, field_validator

from budget_backend.core.constants import SUPPORTED_CURRENCIES
from budget_backend.services.recurring_calendar import parse_date_only


def _strict_date(value: Any) -> Any:
    """Accept only YYYY-MM-DD strings; date objects pass through"""
    if isinstance(value, str):
        return parse_date_only(value)
    if isinstance(value, datetime) or not isinstance(value, date):
        raise ValueError("Expected a YYYY-MM-DD date")
    return value


def _currency_code(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip().upper()
        if value not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency {value!r}")
    return value


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


DateOnly = Annotated[date, BeforeValidator(_strict_date)]
CurrencyCode = Annotated[str, BeforeValidator(_currency_code)]
RuleName = Annotated[str, BeforeValidator(_strip), Field(min_length=1)]


class ScheduleIn(BaseModel):
    frequency: Literal["monthly", "weekly"]
    interval: int = Field(1, ge=1)
    # Monthly only; defaults to the start date's day of month
    day_of_month: Optional[int] = Field(None, ge=1, le=31)


class RecurringRuleCreate(BaseModel):
    name: RuleName
    amount: Decimal = Field(gt=0, description="Amount in major units, e.g. 50.00")
    currency: CurrencyCode
    kind: Literal["expense", "income"]
    category_id: Optional[int] = None
    merchant_id: Optional[int] = None
    schedule: ScheduleIn
    start_date: DateOnly


class RecurringRuleUpdate(BaseModel):
    name: Optional[RuleName] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[CurrencyCode] = None
    kind: Optional[Literal["expense", "income"]] = None
    category_id: Optional[int] = None
    merchant_id: Optional[int] = None
    schedule: Optional[ScheduleIn] = None
    start_date: Optional[DateOnly] = None
    is_archived: Optional[bool] = None

    @field_validator("name", "kind", "currency", "amount", "schedule", "start_date", "is_archived")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # Only category_id / merchant_id may be cleared with an explicit null
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class RecurringRuleOut(BaseModel):
    id: int
    workspace_id: int
    name: str
    amount_minor: int
    currency: str
    kind: Literal["expense", "income"]
    category_id: Optional[int] = None
    merchant_id: Optional[int] = None
    frequency: str
    interval: int
    day_of_month: Optional[int] = None
    start_date: date
    next_run_on: date
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UpcomingRecurringItem(BaseModel):
    rule_id: int
    name: str
    next_date: date
    amount_minor: int
    currency: str
    kind: Literal["expense", "income"]
    category_id: Optional[int] = None
    merchant_id: Optional[int] = None


class UpcomingRecurringOut(BaseModel):
    window_start: date
    window_end: date
    items: list[UpcomingRecurringItem] = []


class RecurringPreviewOut(BaseModel):
    rule_id: int
    dates: list[date]
