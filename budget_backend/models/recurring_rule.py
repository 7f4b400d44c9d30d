from __future__ import annotations
from datetime import datetime, date
from enum import Enum
from sqlalchemy import String, Date, DateTime, Boolean, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from budget_backend.db.base import Base


class RecurringFrequency(str, Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class RecurringRule(Base):
    __tablename__ = "recurring_rules"
    __table_args__ = (
        # Due-rule lookup: non-archived rules with next_run_on <= today
        Index("ix_recurring_rules_due", "is_archived", "next_run_on"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # Owning workspace; workspaces live in the surrounding application
    workspace_id: Mapped[int] = mapped_column(Integer, index=True)

    # Transaction definition
    name: Mapped[str] = mapped_column(Text)
    amount_minor: Mapped[int] = mapped_column(Integer)  # minor currency units, always positive
    currency: Mapped[str] = mapped_column(String(3))
    kind: Mapped[str] = mapped_column(String(20), default=TransactionKind.EXPENSE.value)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    merchant_id: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    # Schedule
    frequency: Mapped[str] = mapped_column(String(20), default=RecurringFrequency.MONTHLY.value)
    interval: Mapped[int] = mapped_column(Integer, default=1)
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)  # monthly only, 1-31

    # Cursor
    start_date: Mapped[date] = mapped_column(Date)
    next_run_on: Mapped[date] = mapped_column(Date)

    # Status
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<RecurringRule id={self.id} {self.frequency}/{self.interval} next_run_on={self.next_run_on}>"
