"""Time entry endpoints - manual entries and history."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from timeledger.database import get_database
from timeledger.errors import ServiceError
from timeledger.models.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from timeledger.routers.auth import get_current_user_id
from timeledger.services.access_service import AccessResolver
from timeledger.services.timer_service import TimerService


router = APIRouter(prefix="/entries", tags=["entries"])


@router.get("", response_model=list[TimeEntry])
async def list_entries(
    task_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    List time entries for the authenticated user.

    - Requires authentication
    - Optional filters: task_id, start_date, end_date (UTC instants)
    - Results sorted by created_at descending (most recent first)
    """
    service = TimerService(db)
    return await service.list_entries(
        user_id=user_id,
        task_id=task_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=TimeEntry, status_code=201)
async def create_entry(
    entry_create: TimeEntryCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Create a manual time entry.

    - Requires authentication
    - Caller must be allowed to act on the task
    - Either a start/end pair, local hours on a date, or a duration
    """
    service = TimerService(db)
    try:
        await AccessResolver(db).require(user_id, entry_create.task_id)
        return await service.create_entry(
            user_id=user_id,
            entry_create=entry_create,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{entry_id}", response_model=TimeEntry)
async def get_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get a specific time entry by ID.

    - Requires authentication
    - User must own the entry
    """
    service = TimerService(db)
    try:
        return await service.get_entry(user_id=user_id, entry_id=entry_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{entry_id}", response_model=TimeEntry)
async def update_entry(
    entry_id: str,
    entry_update: TimeEntryUpdate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Update a time entry.

    - Requires authentication
    - User must own the entry; running timers cannot be edited
    """
    service = TimerService(db)
    try:
        if entry_update.task_id is not None:
            await AccessResolver(db).require(user_id, entry_update.task_id)
        return await service.update_entry(
            user_id=user_id,
            entry_id=entry_id,
            entry_update=entry_update,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Delete a time entry.

    - Requires authentication
    - User must own the entry
    - Hard delete (permanent)
    """
    service = TimerService(db)
    try:
        return await service.delete_entry(
            user_id=user_id,
            entry_id=entry_id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
