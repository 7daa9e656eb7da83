"""User endpoints - onboarding helpers."""
from fastapi import APIRouter, Depends, HTTPException

from timeledger.database import get_database
from timeledger.errors import ServiceError
from timeledger.models.user import User
from timeledger.routers.auth import require_privileged
from timeledger.services.assignment_service import AssignmentService


router = APIRouter(prefix="/users", tags=["users"])


@router.post("/{user_id}/general-tasks")
async def assign_general_tasks(
    user_id: str,
    admin: User = Depends(require_privileged),
    db=Depends(get_database),
):
    """
    Assign every system ("General") task to an active user.

    - Admin or developer only
    - Existing assignments are left alone
    """
    service = AssignmentService(db)
    try:
        created = await service.assign_general_tasks(user_id)
        return {"user_id": user_id, "assigned_count": created}
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
