"""
Catch-up planning: which occurrences of a rule are due as of a given day.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterator

from budget_backend.services.recurring_calendar import (
    Schedule,
    ScheduleProgressError,
    next_occurrence,
    resolve_anchor_day,
)


@dataclass(frozen=True)
class OccurrencePlan:
    occurrences: tuple[date, ...]
    # First date that is not due yet; becomes the rule's next_run_on
    next_run_on: date

    @property
    def is_due(self) -> bool:
        return bool(self.occurrences)


def _walk(rule: Any, today: date) -> Iterator[tuple[date, date]]:
    """Yield (occurrence, following occurrence) pairs for every due occurrence"""
    current = rule.next_run_on
    if current > today:
        return
    schedule = Schedule.from_rule(rule)
    # Resolved once so a clamped Feb 28 does not pull later months down to the 28th
    anchor_day = resolve_anchor_day(schedule, rule.start_date)
    while current <= today:
        following = next_occurrence(current, schedule, anchor_day)
        if following <= current:
            raise ScheduleProgressError(
                f"Rule {getattr(rule, 'id', None)} did not advance past {current.isoformat()}"
            )
        yield current, following
        current = following


def iter_due_occurrences(rule: Any, today: date) -> Iterator[date]:
    """Lazily yield the due occurrence dates of ``rule`` up to and including ``today``"""
    for occurrence, _ in _walk(rule, today):
        yield occurrence


def plan_occurrences(rule: Any, today: date) -> OccurrencePlan:
    """
    Plan the catch-up for one rule.

    Returns every due occurrence in chronological order plus the cursor the rule
    should hold once they are processed. A rule that is not due yet gets an empty
    plan and keeps its cursor. Raises RecurringScheduleError for a malformed
    schedule and ScheduleProgressError if the calendar stops advancing.
    """
    occurrences: list[date] = []
    cursor = rule.next_run_on
    for occurrence, following in _walk(rule, today):
        occurrences.append(occurrence)
        cursor = following
    return OccurrencePlan(occurrences=tuple(occurrences), next_run_on=cursor)
