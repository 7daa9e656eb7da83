"""Task, assignment and team model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task workflow states."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TeamRole(str, Enum):
    """Role of a user inside a team."""

    LEAD = "lead"
    MEMBER = "member"


class Task(BaseModel):
    """Unit of billable work."""

    id: str = Field(alias="_id", serialization_alias="id")
    name: str
    project_id: str
    team_id: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    archived: bool = False
    is_system: bool = False

    model_config = {"populate_by_name": True}


class TaskStatusUpdate(BaseModel):
    """Request model for changing a task's status."""

    status: TaskStatus


class AssignmentCreate(BaseModel):
    """Request model for assigning a user to a task."""

    user_id: str


class TaskAssignment(BaseModel):
    """Direct (task, user) grant."""

    task_id: str
    user_id: str
    created_at: datetime


class AccessDecision(BaseModel):
    """Outcome of the access chain for one (user, task) pair."""

    task_id: str
    user_id: str
    allowed: bool
    rule: Optional[str] = None


class UnassignResult(BaseModel):
    """Outcome of removing a task assignment."""

    deleted_count: int
    cascaded_subtasks_updated: int
