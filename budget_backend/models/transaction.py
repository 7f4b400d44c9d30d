from __future__ import annotations
from typing import TYPE_CHECKING
from datetime import datetime, date
from sqlalchemy import String, Date, DateTime, ForeignKey, Boolean, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_backend.db.base import Base
from budget_backend.models.recurring_rule import TransactionKind

if TYPE_CHECKING:
    from budget_backend.models.recurring_rule import RecurringRule


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        # At most one transaction per (workspace, rule, occurrence). Ordinary
        # transactions have NULL recurring columns and never collide.
        UniqueConstraint(
            "workspace_id", "recurring_rule_id", "occurrence_date",
            name="uq_transactions_recurring_occurrence",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    workspace_id: Mapped[int] = mapped_column(Integer, index=True)

    recurring_rule_id: Mapped[int | None] = mapped_column(
        ForeignKey("recurring_rules.id", ondelete="SET NULL"), index=True, nullable=True
    )
    recurring_rule: Mapped["RecurringRule | None"] = relationship()
    # The occurrence this transaction materializes; tx_date may later be edited, this may not
    occurrence_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    tx_date: Mapped[date] = mapped_column(Date, index=True)
    amount_minor: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3))
    kind: Mapped[str] = mapped_column(String(20), index=True, default=TransactionKind.EXPENSE.value)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    merchant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, default=None)

    is_pending: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
