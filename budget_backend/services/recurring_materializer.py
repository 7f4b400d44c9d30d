import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from budget_backend.core.constants import RECURRING_NOTE_PREFIX
from budget_backend.models.transaction import Transaction
from budget_backend.repositories.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterializeResult:
    created: bool
    transaction_id: int


class OccurrenceMaterializer:
    """Turns one due occurrence of a rule into exactly one pending transaction"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.transaction_repo = TransactionRepository(db)

    @staticmethod
    def build_transaction(rule: Any, occurrence_date: date) -> Transaction:
        """
        Snapshot the rule's current amount, currency, kind, category and merchant.
        Later edits to the rule do not reach transactions built here.
        """
        kind = rule.kind
        return Transaction(
            workspace_id=rule.workspace_id,
            recurring_rule_id=rule.id,
            occurrence_date=occurrence_date,
            tx_date=occurrence_date,
            amount_minor=rule.amount_minor,
            currency=rule.currency,
            kind=getattr(kind, "value", kind),
            category_id=rule.category_id,
            merchant_id=rule.merchant_id,
            note=f"{RECURRING_NOTE_PREFIX}{rule.name}" if rule.name else None,
            is_pending=True,
            is_archived=False,
        )

    async def materialize(self, rule: Any, occurrence_date: date) -> MaterializeResult:
        """
        Ensure a transaction exists for (workspace, rule, occurrence_date).

        Returns created=False when it already existed, including the case where a
        concurrent run inserted it between our lookup and our insert: the unique
        constraint rejects our row and the existing one is returned instead.
        Other store failures propagate.
        """
        existing = await self.transaction_repo.get_by_occurrence(rule.workspace_id, rule.id, occurrence_date)
        if existing is not None:
            logger.debug("Rule %s occurrence %s already materialized as %s", rule.id, occurrence_date, existing.id)
            return MaterializeResult(created=False, transaction_id=existing.id)

        try:
            tx = await self.transaction_repo.create(self.build_transaction(rule, occurrence_date))
        except IntegrityError:
            await self.db.rollback()
            existing = await self.transaction_repo.get_by_occurrence(rule.workspace_id, rule.id, occurrence_date)
            if existing is None:
                raise
            logger.info(
                "Rule %s occurrence %s was materialized concurrently as %s", rule.id, occurrence_date, existing.id
            )
            return MaterializeResult(created=False, transaction_id=existing.id)

        logger.debug("Rule %s occurrence %s materialized as %s", rule.id, occurrence_date, tx.id)
        return MaterializeResult(created=True, transaction_id=tx.id)
