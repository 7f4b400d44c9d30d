from datetime import date

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from budget_backend.models.transaction import Transaction


class TransactionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, tx_id: int) -> Transaction | None:
        res = await self.db.execute(select(Transaction).where(Transaction.id == tx_id))
        return res.scalar_one_or_none()

    async def create(self, tx: Transaction) -> Transaction:
        self.db.add(tx)
        await self.db.commit()
        await self.db.refresh(tx)
        return tx

    async def get_by_occurrence(self, workspace_id: int, rule_id: int, occurrence_date: date) -> Transaction | None:
        """Transaction materialized for (workspace, rule, occurrence), if any"""
        res = await self.db.execute(
            select(Transaction).where(
                and_(
                    Transaction.workspace_id == workspace_id,
                    Transaction.recurring_rule_id == rule_id,
                    Transaction.occurrence_date == occurrence_date,
                )
            )
        )
        return res.scalar_one_or_none()

    async def list_by_rule(self, workspace_id: int, rule_id: int) -> list[Transaction]:
        """Transactions materialized from a rule, newest occurrence first"""
        res = await self.db.execute(
            select(Transaction)
            .where(
                and_(
                    Transaction.workspace_id == workspace_id,
                    Transaction.recurring_rule_id == rule_id,
                )
            )
            .order_by(Transaction.occurrence_date.desc(), Transaction.id.desc())
        )
        return list(res.scalars().all())
