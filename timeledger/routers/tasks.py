"""Task endpoints - listings, access checks, status and assignments."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from timeledger.database import get_database
from timeledger.errors import AuthorizationError, ServiceError
from timeledger.models.task import (
    AccessDecision,
    AssignmentCreate,
    Task,
    TaskAssignment,
    TaskStatusUpdate,
    UnassignResult,
)
from timeledger.models.user import User
from timeledger.routers.auth import get_current_user, get_current_user_id, require_privileged
from timeledger.services.access_service import AccessResolver
from timeledger.services.assignment_service import AssignmentService
from timeledger.services.task_service import TaskService


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=list[Task])
async def list_tasks(
    include_system: bool = Query(False),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    List tasks assigned to the authenticated user.

    - Requires authentication
    - System tasks are hidden unless include_system is set
    """
    service = TaskService(db)
    return await service.list_user_tasks(user_id=user_id, include_system=include_system)


@router.get("/{task_id}/access", response_model=AccessDecision)
async def get_access(
    task_id: str,
    user_id: Optional[str] = Query(None, description="Check another user (admin/developer only)"),
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """
    Whether a user may act on a task, and which rule allowed it.

    - Requires authentication
    """
    resolver = AccessResolver(db)
    try:
        target = user_id or user.id
        if target != user.id and not user.is_privileged:
            raise AuthorizationError("You may only check your own access")
        return await resolver.decide(target, task_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{task_id}/status", response_model=Task)
async def update_status(
    task_id: str,
    status_update: TaskStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Change a task's status.

    - Requires authentication
    - Caller must be allowed to act on the task
    """
    service = TaskService(db)
    try:
        await AccessResolver(db).require(user_id, task_id)
        return await service.update_status(task_id=task_id, status=status_update.status)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{task_id}/assignments", response_model=list[TaskAssignment])
async def list_assignments(
    task_id: str,
    admin: User = Depends(require_privileged),
    db=Depends(get_database),
):
    """
    List direct assignments of a task.

    - Admin or developer only
    """
    service = AssignmentService(db)
    try:
        return await service.list_assignments(task_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{task_id}/assignments", response_model=TaskAssignment, status_code=201)
async def assign_user(
    task_id: str,
    assignment: AssignmentCreate,
    admin: User = Depends(require_privileged),
    db=Depends(get_database),
):
    """
    Assign a user to a task.

    - Admin or developer only
    - 409 if the user is already assigned
    """
    service = AssignmentService(db)
    try:
        return await service.assign_user(user_id=assignment.user_id, task_id=task_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{task_id}/assignments/{user_id}", response_model=UnassignResult)
async def unassign_user(
    task_id: str,
    user_id: str,
    admin: User = Depends(require_privileged),
    db=Depends(get_database),
):
    """
    Remove a user from a task and from its subtasks.

    - Admin or developer only
    - Subtask cleanup is best effort and never fails the request
    """
    service = AssignmentService(db)
    try:
        return await service.unassign_user(user_id=user_id, task_id=task_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
