"""Report endpoints - weekly and billing aggregates."""
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from timeledger.config import settings
from timeledger.database import get_database
from timeledger.errors import AuthorizationError, ServiceError
from timeledger.models.report import DailyTotalsReport, ProjectTotalsReport, TaskTotalsReport
from timeledger.models.user import User
from timeledger.routers.auth import get_current_user
from timeledger.services.report_service import ReportService


router = APIRouter(prefix="/reports", tags=["reports"])


def _target_user(user: User, requested: Optional[str]) -> str:
    """Whose time to report; only admins and developers may look at others."""
    if requested is None or requested == user.id:
        return user.id
    if not user.is_privileged:
        raise AuthorizationError("You may only view your own reports")
    return requested


def _offset(tz_offset_minutes: Optional[int]) -> int:
    if tz_offset_minutes is None:
        return settings.default_tz_offset_minutes
    return tz_offset_minutes


@router.get("/daily-totals", response_model=DailyTotalsReport)
async def daily_totals(
    start: Optional[date] = Query(None, description="First local date (default: this Sunday)"),
    end: Optional[date] = Query(None, description="Last local date, inclusive"),
    tz_offset_minutes: Optional[int] = Query(None, description="Minutes behind UTC, e.g. 480 for UTC-8"),
    user_id: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """
    Seconds logged per local day of week.

    - Requires authentication
    - Ongoing timers are excluded
    """
    service = ReportService(db)
    try:
        return await service.daily_totals(
            user_id=_target_user(user, user_id),
            start=start,
            end=end,
            tz_offset_minutes=_offset(tz_offset_minutes),
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/task-totals", response_model=TaskTotalsReport)
async def task_totals(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    tz_offset_minutes: Optional[int] = Query(None),
    user_id: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """
    Timesheet grid: one row per task, split by local day of week.

    - Requires authentication
    - Cost is only filled in for admins
    """
    service = ReportService(db)
    try:
        return await service.task_totals(
            user_id=_target_user(user, user_id),
            start=start,
            end=end,
            tz_offset_minutes=_offset(tz_offset_minutes),
            include_cost=user.is_admin,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/project-totals", response_model=ProjectTotalsReport)
async def project_totals(
    start: Optional[datetime] = Query(None, description="UTC instant, inclusive"),
    end: Optional[datetime] = Query(None, description="UTC instant, inclusive"),
    tz_offset_minutes: Optional[int] = Query(None, description="Only used for the default week"),
    user_id: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """
    Seconds and cost per project over a raw UTC range.

    - Requires authentication
    - Cost is only filled in for admins
    """
    service = ReportService(db)
    try:
        return await service.project_totals(
            user_id=_target_user(user, user_id),
            start=start,
            end=end,
            tz_offset_minutes=_offset(tz_offset_minutes),
            include_cost=user.is_admin,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
