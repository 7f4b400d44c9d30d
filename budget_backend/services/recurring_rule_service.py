from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from itertools import islice
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from budget_backend.core.constants import CURRENCY_MINOR_DIGITS
from budget_backend.models.recurring_rule import RecurringFrequency, RecurringRule
from budget_backend.models.transaction import Transaction
from budget_backend.repositories.recurring_rule_repository import RecurringRuleRepository
from budget_backend.repositories.transaction_repository import TransactionRepository
from budget_backend.schemas.recurring_rule import RecurringRuleCreate, RecurringRuleUpdate
from budget_backend.services.recurring_calendar import (
    Schedule,
    first_occurrence_on_or_after,
    iter_occurrences,
    resolve_anchor_day,
)


def to_minor_units(amount: Decimal, currency: str) -> int:
    digits = CURRENCY_MINOR_DIGITS.get(currency, 2)
    minor = (Decimal(amount) * (10 ** digits)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if minor <= 0:
        raise ValueError("Amount must be at least one minor currency unit.")
    return int(minor)


def from_minor_units(amount_minor: int, currency: str) -> Decimal:
    return Decimal(amount_minor).scaleb(-CURRENCY_MINOR_DIGITS.get(currency, 2))


def build_schedule(frequency: str, interval: int, day_of_month: Optional[int], start_date: date) -> Schedule:
    """Monthly rules always store an anchor day (start day by default); weekly rules never do"""
    if frequency == RecurringFrequency.MONTHLY.value:
        day_of_month = day_of_month if day_of_month is not None else start_date.day
    else:
        day_of_month = None
    return Schedule(frequency=frequency, interval=interval, day_of_month=day_of_month).validate()


class RecurringRuleService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.rule_repo = RecurringRuleRepository(db)
        self.transaction_repo = TransactionRepository(db)

    async def create_rule(self, workspace_id: int, data: RecurringRuleCreate, today: date) -> RecurringRule:
        """
        Create a rule with its cursor on the first occurrence on or after today,
        or on the start date itself when that is still ahead.
        """
        schedule = build_schedule(
            data.schedule.frequency, data.schedule.interval, data.schedule.day_of_month, data.start_date
        )
        payload = {
            "workspace_id": workspace_id,
            "name": data.name,
            "amount_minor": to_minor_units(data.amount, data.currency),
            "currency": data.currency,
            "kind": data.kind,
            "category_id": data.category_id,
            "merchant_id": data.merchant_id,
            "frequency": schedule.frequency,
            "interval": schedule.interval,
            "day_of_month": schedule.day_of_month,
            "start_date": data.start_date,
            "next_run_on": first_occurrence_on_or_after(schedule, data.start_date, today),
            "is_archived": False,
        }
        return await self.rule_repo.create(payload)

    async def get_rule(self, workspace_id: int, rule_id: int) -> Optional[RecurringRule]:
        return await self.rule_repo.get_by_id(rule_id, workspace_id=workspace_id)

    async def list_rules(self, workspace_id: int, include_archived: bool = True) -> List[RecurringRule]:
        return await self.rule_repo.list_by_workspace(workspace_id, include_archived=include_archived)

    async def update_rule(
        self, workspace_id: int, rule_id: int, data: RecurringRuleUpdate, today: date
    ) -> Optional[RecurringRule]:
        """
        Update a rule, last write wins.

        Schedule or start date edits re-resolve the cursor to the first occurrence
        of the new schedule that is not before the old cursor, so it never moves
        backward. Unarchiving resolves from today at the earliest so the archived
        period is not caught up. Already materialized transactions are untouched.
        """
        rule = await self.rule_repo.get_by_id(rule_id, workspace_id=workspace_id)
        if not rule:
            return None

        update_data = data.model_dump(exclude_unset=True)
        changes = {}

        for field in ("name", "kind", "category_id", "merchant_id", "currency", "is_archived"):
            if field in update_data:
                changes[field] = update_data[field]

        if "amount" in update_data:
            changes["amount_minor"] = to_minor_units(update_data["amount"], changes.get("currency", rule.currency))
        elif changes.get("currency", rule.currency) != rule.currency:
            # Same major amount, re-expressed in the new currency's minor units
            major = from_minor_units(rule.amount_minor, rule.currency)
            changes["amount_minor"] = to_minor_units(major, changes["currency"])

        start_date = update_data.get("start_date", rule.start_date)
        if "schedule" in update_data:
            schedule_in = data.schedule
            schedule = build_schedule(
                schedule_in.frequency, schedule_in.interval, schedule_in.day_of_month, start_date
            )
        else:
            schedule = Schedule.from_rule(rule)

        unarchiving = rule.is_archived and update_data.get("is_archived") is False
        if "schedule" in update_data or "start_date" in update_data or unarchiving:
            floor = max(rule.next_run_on, today) if unarchiving else rule.next_run_on
            changes.update(
                frequency=schedule.frequency,
                interval=schedule.interval,
                day_of_month=schedule.day_of_month,
                start_date=start_date,
                next_run_on=first_occurrence_on_or_after(schedule, start_date, floor),
            )

        return await self.rule_repo.update(rule, changes)

    async def archive_rule(self, workspace_id: int, rule_id: int) -> Optional[RecurringRule]:
        rule = await self.rule_repo.get_by_id(rule_id, workspace_id=workspace_id)
        if not rule:
            return None
        return await self.rule_repo.archive(rule)

    async def delete_rule(self, workspace_id: int, rule_id: int) -> bool:
        rule = await self.rule_repo.get_by_id(rule_id, workspace_id=workspace_id)
        if not rule:
            return False
        return await self.rule_repo.delete(rule)

    async def list_upcoming(
        self, workspace_id: int, today: date, days: int, currency: Optional[str] = None
    ) -> List[RecurringRule]:
        """Rules whose next occurrence is within the next ``days`` days"""
        return await self.rule_repo.list_upcoming(
            workspace_id, today, today + timedelta(days=days), currency=currency
        )

    async def preview_occurrences(self, workspace_id: int, rule_id: int, count: int = 12) -> Optional[List[date]]:
        """Next ``count`` occurrence dates starting at the rule's cursor"""
        rule = await self.rule_repo.get_by_id(rule_id, workspace_id=workspace_id)
        if not rule:
            return None
        if rule.is_archived:
            return []
        schedule = Schedule.from_rule(rule)
        anchor_day = resolve_anchor_day(schedule, rule.start_date)
        return list(islice(iter_occurrences(schedule, rule.next_run_on, anchor_day), count))

    async def list_rule_transactions(self, workspace_id: int, rule_id: int) -> List[Transaction]:
        return await self.transaction_repo.list_by_rule(workspace_id, rule_id)
