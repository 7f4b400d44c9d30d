from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
from datetime import timedelta

from budget_backend.core.config import settings
from budget_backend.core.deps import DBSessionDep, TodayDep, WorkspaceDep, require_recurring_run_credential
from budget_backend.schemas.recurring_rule import (
    CurrencyCode,
    RecurringPreviewOut,
    RecurringRuleCreate,
    RecurringRuleOut,
    RecurringRuleUpdate,
    UpcomingRecurringItem,
    UpcomingRecurringOut,
)
from budget_backend.schemas.recurring_run import RecurringRunResult
from budget_backend.schemas.transaction import TransactionOut
from budget_backend.services.recurring_calendar import RecurringScheduleError
from budget_backend.services.recurring_rule_service import RecurringRuleService
from budget_backend.services.recurring_run_service import RecurringRunCoordinator

router = APIRouter()


@router.post("/run", response_model=RecurringRunResult, dependencies=[Depends(require_recurring_run_credential)])
async def run_recurring_scheduler(db: DBSessionDep, today: TodayDep):
    """
    Run the recurring scheduler now.
    Per-rule failures are reported in `errors`; the call itself still succeeds.
    """
    return await RecurringRunCoordinator(db).run_once(today)


@router.get("", response_model=List[RecurringRuleOut])
async def list_recurring_rules(
    db: DBSessionDep,
    workspace_id: WorkspaceDep,
    include_archived: bool = Query(True),
):
    return await RecurringRuleService(db).list_rules(workspace_id, include_archived=include_archived)


@router.post("", response_model=RecurringRuleOut)
async def create_recurring_rule(
    db: DBSessionDep,
    data: RecurringRuleCreate,
    workspace_id: WorkspaceDep,
    today: TodayDep,
):
    try:
        return await RecurringRuleService(db).create_rule(workspace_id, data, today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/upcoming", response_model=UpcomingRecurringOut)
async def list_upcoming_recurring(
    db: DBSessionDep,
    workspace_id: WorkspaceDep,
    today: TodayDep,
    days: int | None = Query(None, ge=1, le=366),
    currency: Optional[CurrencyCode] = Query(None),
):
    """Rules coming due in the next few days (default window from settings)"""
    window = days or settings.RECURRING_UPCOMING_DAYS
    rules = await RecurringRuleService(db).list_upcoming(workspace_id, today, window, currency=currency)
    items = [
        UpcomingRecurringItem(
            rule_id=rule.id,
            name=rule.name,
            next_date=rule.next_run_on,
            amount_minor=rule.amount_minor,
            currency=rule.currency,
            kind=rule.kind,
            category_id=rule.category_id,
            merchant_id=rule.merchant_id,
        )
        for rule in rules
    ]
    return UpcomingRecurringOut(window_start=today, window_end=today + timedelta(days=window), items=items)


@router.get("/{rule_id}", response_model=RecurringRuleOut)
async def get_recurring_rule(rule_id: int, db: DBSessionDep, workspace_id: WorkspaceDep):
    rule = await RecurringRuleService(db).get_rule(workspace_id, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Recurring rule not found")
    return rule


@router.put("/{rule_id}", response_model=RecurringRuleOut)
async def update_recurring_rule(
    rule_id: int,
    db: DBSessionDep,
    data: RecurringRuleUpdate,
    workspace_id: WorkspaceDep,
    today: TodayDep,
):
    try:
        rule = await RecurringRuleService(db).update_rule(workspace_id, rule_id, data, today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not rule:
        raise HTTPException(status_code=404, detail="Recurring rule not found")
    return rule


@router.post("/{rule_id}/archive", response_model=RecurringRuleOut)
async def archive_recurring_rule(rule_id: int, db: DBSessionDep, workspace_id: WorkspaceDep):
    rule = await RecurringRuleService(db).archive_rule(workspace_id, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Recurring rule not found")
    return rule


@router.delete("/{rule_id}")
async def delete_recurring_rule(rule_id: int, db: DBSessionDep, workspace_id: WorkspaceDep):
    """Hard delete; transactions already materialized from the rule are kept"""
    deleted = await RecurringRuleService(db).delete_rule(workspace_id, rule_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Recurring rule not found")
    return {"ok": True}


@router.get("/{rule_id}/preview", response_model=RecurringPreviewOut)
async def preview_recurring_rule(
    rule_id: int,
    db: DBSessionDep,
    workspace_id: WorkspaceDep,
    count: int = Query(12, ge=1, le=120),
):
    try:
        dates = await RecurringRuleService(db).preview_occurrences(workspace_id, rule_id, count)
    except RecurringScheduleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if dates is None:
        raise HTTPException(status_code=404, detail="Recurring rule not found")
    return RecurringPreviewOut(rule_id=rule_id, dates=dates)


@router.get("/{rule_id}/transactions", response_model=List[TransactionOut])
async def list_recurring_rule_transactions(rule_id: int, db: DBSessionDep, workspace_id: WorkspaceDep):
    service = RecurringRuleService(db)
    if not await service.get_rule(workspace_id, rule_id):
        raise HTTPException(status_code=404, detail="Recurring rule not found")
    return await service.list_rule_transactions(workspace_id, rule_id)
