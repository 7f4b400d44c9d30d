from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel


class TransactionOut(BaseModel):
    id: int
    workspace_id: int
    recurring_rule_id: Optional[int] = None
    occurrence_date: Optional[date] = None
    tx_date: date
    amount_minor: int
    currency: str
    kind: Literal["income", "expense"]
    category_id: Optional[int] = None
    merchant_id: Optional[int] = None
    note: Optional[str] = None
    is_pending: bool
    is_archived: bool
    created_at: datetime

    class Config:
        from_attributes = True
