from __future__ import annotations

from pydantic import BaseModel, Field


class RecurringRunError(BaseModel):
    rule_id: int
    message: str


class RecurringRunResult(BaseModel):
    """Outcome of one scheduler pass; per-rule failures are reported, not raised"""
    created_ids: list[int] = Field(default_factory=list)
    errors: list[RecurringRunError] = Field(default_factory=list)
