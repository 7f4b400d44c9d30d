import secrets
from datetime import date
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from budget_backend.db.session import get_db
from budget_backend.core.config import settings
from budget_backend.services.recurring_calendar import today_in_zone


DBSessionDep = Annotated[AsyncSession, Depends(get_db)]


def get_today() -> date:
    """Today as a civil date in the scheduler's reference timezone"""
    return today_in_zone(settings.RECURRING_TIMEZONE)


TodayDep = Annotated[date, Depends(get_today)]


async def get_workspace_id(x_workspace_id: Annotated[Optional[int], Header()] = None) -> int:
    """
    Workspace of the caller. Session and workspace resolution belong to the
    surrounding application, which forwards the resolved id in this header.
    """
    if x_workspace_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Workspace not resolved")
    return x_workspace_id


WorkspaceDep = Annotated[int, Depends(get_workspace_id)]


async def require_recurring_run_credential(
    x_recurring_secret: Annotated[Optional[str], Header()] = None,
) -> None:
    """Authorize the scheduler trigger: the caller must present the shared run secret"""
    expected = settings.RECURRING_RUN_SECRET
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Recurring secret not configured",
        )
    if not x_recurring_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not secrets.compare_digest(x_recurring_secret.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
