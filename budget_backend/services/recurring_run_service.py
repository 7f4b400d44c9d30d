import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from budget_backend.core.config import settings
from budget_backend.models.recurring_rule import RecurringRule
from budget_backend.repositories.recurring_rule_repository import RecurringRuleRepository
from budget_backend.schemas.recurring_run import RecurringRunError, RecurringRunResult
from budget_backend.services.recurring_calendar import RecurringScheduleError
from budget_backend.services.recurring_materializer import OccurrenceMaterializer
from budget_backend.services.recurring_planner import plan_occurrences

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleSnapshot:
    """Plain copy of a rule, safe to use after the session rolls back"""
    id: int
    workspace_id: int
    name: str
    amount_minor: int
    currency: str
    kind: str
    category_id: Optional[int]
    merchant_id: Optional[int]
    frequency: str
    interval: int
    day_of_month: Optional[int]
    start_date: date
    next_run_on: date

    @classmethod
    def from_model(cls, rule: RecurringRule) -> "RuleSnapshot":
        return cls(
            id=rule.id,
            workspace_id=rule.workspace_id,
            name=rule.name,
            amount_minor=rule.amount_minor,
            currency=rule.currency,
            kind=rule.kind,
            category_id=rule.category_id,
            merchant_id=rule.merchant_id,
            frequency=rule.frequency,
            interval=rule.interval,
            day_of_month=rule.day_of_month,
            start_date=rule.start_date,
            next_run_on=rule.next_run_on,
        )


class RecurringRunCoordinator:
    """
    One scheduler pass over every due rule.

    Each rule is planned, its due occurrences are materialized oldest first and
    its cursor is moved forward. A failing rule is recorded in the result and the
    pass continues with the next one. The coordinator holds no state between
    passes: everything lives in next_run_on and the materialized transactions.
    """

    def __init__(self, db: AsyncSession, advance_on_failure: Optional[bool] = None):
        self.db = db
        self.rule_repo = RecurringRuleRepository(db)
        self.materializer = OccurrenceMaterializer(db)
        self.advance_on_failure = (
            settings.RECURRING_ADVANCE_ON_FAILURE if advance_on_failure is None else advance_on_failure
        )

    async def run_once(self, today: date) -> RecurringRunResult:
        result = RecurringRunResult()
        rules = [RuleSnapshot.from_model(rule) for rule in await self.rule_repo.list_due(today)]

        for rule in rules:
            try:
                await self._run_rule(rule, today, result)
            except Exception as e:
                logger.exception("Recurring rule %s failed", rule.id)
                await self.db.rollback()
                self._record_error(result, rule, f"Unexpected error: {e}")

        logger.info(
            "Recurring run for %s: %d due rules, %d transactions created, %d errors",
            today.isoformat(), len(rules), len(result.created_ids), len(result.errors),
        )
        return result

    async def _run_rule(self, rule: RuleSnapshot, today: date, result: RecurringRunResult) -> None:
        try:
            plan = plan_occurrences(rule, today)
        except RecurringScheduleError as e:
            # Cursor stays put; the rule is due again on the next run
            self._record_error(result, rule, f"Invalid schedule: {e}")
            return

        cursor = plan.next_run_on
        for occurrence in plan.occurrences:
            try:
                outcome = await self.materializer.materialize(rule, occurrence)
            except SQLAlchemyError as e:
                await self.db.rollback()
                self._record_error(
                    result, rule,
                    f"Failed to materialize occurrence {occurrence.isoformat()}: {getattr(e, 'orig', None) or e}",
                )
                if self.advance_on_failure:
                    continue
                cursor = occurrence
                break
            if outcome.created:
                result.created_ids.append(outcome.transaction_id)

        if cursor > rule.next_run_on:
            await self.rule_repo.advance_cursor(rule.id, cursor)

    @staticmethod
    def _record_error(result: RecurringRunResult, rule: RuleSnapshot, message: str) -> None:
        logger.warning("Recurring rule %s: %s", rule.id, message)
        result.errors.append(RecurringRunError(rule_id=rule.id, message=message))
