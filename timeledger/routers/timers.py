"""Timer endpoints - running timer lifecycle."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from timeledger.database import get_database
from timeledger.errors import ServiceError
from timeledger.models.timer import StoppedTimer, TimerSnapshot, TimerStart, TimerStop
from timeledger.models.user import User
from timeledger.routers.auth import get_current_user_id, require_admin
from timeledger.services.access_service import AccessResolver
from timeledger.services.timer_service import TimerService


router = APIRouter(prefix="/timers", tags=["timers"])


@router.post("/start", response_model=TimerSnapshot, status_code=201)
async def start_timer(
    timer_start: TimerStart,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Start a new timer.

    - Requires authentication
    - Only one timer can run at a time (409 otherwise)
    - Caller must be allowed to act on the task
    """
    service = TimerService(db)
    try:
        await AccessResolver(db).require(user_id, timer_start.task_id)
        return await service.start_timer(
            user_id=user_id,
            task_id=timer_start.task_id,
            notes=timer_start.notes,
            client_time_ms=timer_start.client_time_ms,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/stop", response_model=StoppedTimer)
async def stop_timer(
    timer_stop: TimerStop,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Stop a running timer.

    - Requires authentication
    - The timer must be running and belong to the caller
    - No task access check: only the caller's own running timer matches,
      and access was checked when it started
    """
    service = TimerService(db)
    try:
        return await service.stop_timer(
            user_id=user_id,
            timer_id=timer_stop.timer_id,
            end_time=timer_stop.end_time,
            client_time_ms=timer_stop.client_time_ms,
            notes=timer_stop.notes,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/current", response_model=Optional[TimerSnapshot])
async def get_current_timer(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get the currently running timer, if any.

    - Requires authentication
    - Returns null when no timer is running
    """
    service = TimerService(db)
    return await service.get_ongoing_timer(user_id=user_id)


@router.get("/ongoing", response_model=list[TimerSnapshot])
async def list_ongoing_timers(
    admin: User = Depends(require_admin),
    db=Depends(get_database),
):
    """
    List every running timer.

    - Admin only
    """
    service = TimerService(db)
    return await service.list_ongoing_timers()


@router.delete("/{timer_id}")
async def force_stop_timer(
    timer_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Discard a running timer without recording time.

    - Requires authentication
    - The timer must be running and belong to the caller
    - No task access check: only the caller's own running timer matches
    """
    service = TimerService(db)
    try:
        return await service.force_stop_timer(user_id=user_id, timer_id=timer_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
