from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, select, update
from datetime import date, datetime

from budget_backend.models.recurring_rule import RecurringRule
from budget_backend.models.transaction import Transaction


class RecurringRuleRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: dict) -> RecurringRule:
        """Create a new recurring rule"""
        rule = RecurringRule(**data)
        self.db.add(rule)
        await self.db.commit()
        await self.db.refresh(rule)
        return rule

    async def get_by_id(self, rule_id: int, workspace_id: Optional[int] = None) -> Optional[RecurringRule]:
        """Get a recurring rule by ID, optionally scoped to a workspace"""
        stmt = select(RecurringRule).where(RecurringRule.id == rule_id)
        if workspace_id is not None:
            stmt = stmt.where(RecurringRule.workspace_id == workspace_id)
        res = await self.db.execute(stmt)
        return res.scalar_one_or_none()

    async def list_by_workspace(self, workspace_id: int, include_archived: bool = True) -> List[RecurringRule]:
        """List recurring rules of a workspace, newest first"""
        stmt = select(RecurringRule).where(RecurringRule.workspace_id == workspace_id)
        if not include_archived:
            stmt = stmt.where(RecurringRule.is_archived == False)
        res = await self.db.execute(stmt.order_by(RecurringRule.created_at.desc(), RecurringRule.id.desc()))
        return list(res.scalars().all())

    async def list_due(self, today: date) -> List[RecurringRule]:
        """Non-archived rules whose cursor is on or before today"""
        res = await self.db.execute(
            select(RecurringRule)
            .where(
                and_(
                    RecurringRule.is_archived == False,
                    RecurringRule.next_run_on <= today,
                )
            )
            .order_by(RecurringRule.next_run_on, RecurringRule.id)
        )
        return list(res.scalars().all())

    async def list_upcoming(
        self, workspace_id: int, start: date, end: date, currency: Optional[str] = None
    ) -> List[RecurringRule]:
        """Non-archived rules whose next occurrence falls within [start, end], optionally in one currency"""
        stmt = select(RecurringRule).where(
            and_(
                RecurringRule.workspace_id == workspace_id,
                RecurringRule.is_archived == False,
                RecurringRule.next_run_on >= start,
                RecurringRule.next_run_on <= end,
            )
        )
        if currency is not None:
            stmt = stmt.where(RecurringRule.currency == currency)
        res = await self.db.execute(stmt.order_by(RecurringRule.next_run_on, RecurringRule.id))
        return list(res.scalars().all())

    async def update(self, rule: RecurringRule, data: dict) -> RecurringRule:
        """Update a recurring rule (last write wins)"""
        for field, value in data.items():
            setattr(rule, field, value)

        rule.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(rule)
        return rule

    async def archive(self, rule: RecurringRule) -> RecurringRule:
        """Archive a recurring rule; archived rules are never scheduled"""
        rule.is_archived = True
        rule.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(rule)
        return rule

    async def delete(self, rule: RecurringRule) -> bool:
        """Hard delete a rule. Its materialized transactions stay, unlinked."""
        await self.db.execute(
            update(Transaction)
            .where(Transaction.recurring_rule_id == rule.id)
            .values(recurring_rule_id=None)
        )
        await self.db.delete(rule)
        await self.db.commit()
        return True

    async def advance_cursor(self, rule_id: int, next_run_on: date) -> bool:
        """
        Move next_run_on forward to ``next_run_on``.
        The update only applies when it moves the cursor forward, so a stale or
        overlapping run can never rewind it. Returns True if the row changed.
        """
        res = await self.db.execute(
            update(RecurringRule)
            .where(
                and_(
                    RecurringRule.id == rule_id,
                    RecurringRule.next_run_on < next_run_on,
                )
            )
            .values(next_run_on=next_run_on, updated_at=datetime.utcnow())
        )
        await self.db.commit()
        return res.rowcount > 0
