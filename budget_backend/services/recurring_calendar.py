"""
Calendar arithmetic for recurring rules.

Everything here works on civil dates (``datetime.date``) with no time of day and
no timezone, so month/day arithmetic cannot drift when the server locale changes.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterator, Optional
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from budget_backend.models.recurring_rule import RecurringFrequency

_DATE_ONLY_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")


class RecurringScheduleError(ValueError):
    """The rule's schedule cannot produce occurrences"""


class ScheduleProgressError(RecurringScheduleError):
    """A calendar step failed to move strictly forward"""


class DateOnlyError(ValueError):
    pass


@dataclass(frozen=True)
class Schedule:
    frequency: str
    interval: int
    day_of_month: Optional[int] = None

    @classmethod
    def from_rule(cls, rule: Any) -> "Schedule":
        frequency = rule.frequency
        return cls(
            frequency=getattr(frequency, "value", frequency),
            interval=rule.interval,
            day_of_month=rule.day_of_month,
        )

    @property
    def is_monthly(self) -> bool:
        return self.frequency == RecurringFrequency.MONTHLY.value

    def validate(self) -> "Schedule":
        if self.frequency not in (RecurringFrequency.MONTHLY.value, RecurringFrequency.WEEKLY.value):
            raise RecurringScheduleError(f"Unsupported frequency: {self.frequency!r}")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 1:
            raise RecurringScheduleError(f"Interval must be a positive integer, got {self.interval!r}")
        if self.is_monthly and self.day_of_month is not None:
            _check_anchor_day(self.day_of_month)
        return self


def _check_anchor_day(day: Any) -> int:
    if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 31:
        raise RecurringScheduleError(f"Day of month must be between 1 and 31, got {day!r}")
    return day


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def resolve_anchor_day(schedule: Schedule, start_date: date) -> Optional[int]:
    """
    Day-of-month every monthly occurrence aims for.
    Monthly rules without an explicit day fall back to the start date's day;
    weekly rules have no anchor.
    """
    schedule.validate()
    if not schedule.is_monthly:
        return None
    if schedule.day_of_month is not None:
        return _check_anchor_day(schedule.day_of_month)
    if start_date is None:
        raise RecurringScheduleError("Monthly rule has neither a day of month nor a start date")
    return start_date.day


def next_occurrence(current: date, schedule: Schedule, anchor_day: Optional[int] = None) -> date:
    """
    Occurrence following ``current``.

    Weekly rules move ``interval`` weeks. Monthly rules move ``interval`` months
    and land on ``min(anchor_day, days in that month)``, so an anchor of 31 gives
    Feb 28/29 rather than rolling into March.
    """
    schedule.validate()
    try:
        if schedule.is_monthly:
            if anchor_day is None:
                anchor_day = schedule.day_of_month if schedule.day_of_month is not None else current.day
            _check_anchor_day(anchor_day)
            # relativedelta clamps an absolute day to the target month's length
            following = current + relativedelta(months=schedule.interval, day=anchor_day)
        else:
            following = current + timedelta(weeks=schedule.interval)
    except (OverflowError, ValueError) as e:
        if isinstance(e, RecurringScheduleError):
            raise
        raise ScheduleProgressError(f"No occurrence after {current.isoformat()}: {e}") from e

    if following <= current:
        raise ScheduleProgressError(
            f"Schedule did not advance from {current.isoformat()} (got {following.isoformat()})"
        )
    return following


def iter_occurrences(schedule: Schedule, first: date, anchor_day: Optional[int] = None) -> Iterator[date]:
    """Endless ascending occurrences starting at ``first``"""
    current = first
    while True:
        yield current
        current = next_occurrence(current, schedule, anchor_day)


def first_occurrence_on_or_after(schedule: Schedule, start_date: date, floor: date) -> date:
    """
    First occurrence of the schedule anchored at ``start_date`` that is >= ``floor``.
    A start date that is already >= floor is returned as is.
    """
    anchor_day = resolve_anchor_day(schedule, start_date)
    for occurrence in iter_occurrences(schedule, start_date, anchor_day):
        if occurrence >= floor:
            return occurrence
    raise ScheduleProgressError("Schedule ended before reaching the requested date")  # pragma: no cover


def is_date_only(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parse_date_only(value)
    except DateOnlyError:
        return False
    return True


def parse_date_only(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string; no timestamps, no timezone"""
    if not isinstance(value, str):
        raise DateOnlyError(f"Expected a YYYY-MM-DD string, got {type(value).__name__}")
    match = _DATE_ONLY_RE.fullmatch(value)
    if not match:
        raise DateOnlyError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise DateOnlyError(f"Invalid date {value!r}: {e}") from e


def format_date_only(value: date) -> str:
    if isinstance(value, datetime) or not isinstance(value, date):
        raise DateOnlyError(f"Expected a date, got {type(value).__name__}")
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def today_in_zone(tz_name: str = "UTC") -> date:
    """Civil date right now in the reference timezone"""
    return datetime.now(ZoneInfo(tz_name)).date()
