"""Assignment service - direct task grants and their cascades."""
import logging
from datetime import datetime
from typing import Callable, Optional

from pymongo.errors import DuplicateKeyError

from timeledger.errors import ConflictError, NotFoundError, ValidationError
from timeledger.models.task import TaskAssignment, UnassignResult
from timeledger.models.user import UserStatus
from timeledger.services.cascade_service import SubtaskCascade
from timeledger.utils.ids import canonical_id, parse_object_id
from timeledger.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class AssignmentService:
    """Service for assigning users to tasks."""

    def __init__(self, db, clock: Optional[Callable[[], datetime]] = None):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]
        self.tasks = db["tasks"]
        self.task_assignments = db["task_assignments"]
        self.clock = clock or utcnow
        self.cascade = SubtaskCascade(db, clock=self.clock)

    async def _get_user(self, user_id: str) -> dict:
        user = await self.users.find_one({"_id": parse_object_id(user_id, "user")})
        if not user:
            raise NotFoundError("User not found")
        return user

    async def _get_task(self, task_id: str) -> dict:
        task = await self.tasks.find_one({"_id": parse_object_id(task_id, "task")})
        if not task:
            raise NotFoundError("Task not found")
        return task

    async def assign_user(self, user_id: str, task_id: str) -> TaskAssignment:
        """
        Grant a user direct access to a task.

        Raises:
            NotFoundError: If user or task doesn't exist
            ConflictError: If the user is already assigned
        """
        user_id = str((await self._get_user(user_id))["_id"])
        task_id = str((await self._get_task(task_id))["_id"])

        now = self.clock()
        try:
            await self.task_assignments.insert_one({
                "task_id": task_id,
                "user_id": user_id,
                "created_at": now,
            })
        except DuplicateKeyError:
            raise ConflictError("User is already assigned to this task") from None

        logger.info("Assigned user %s to task %s", user_id, task_id)
        return TaskAssignment(task_id=task_id, user_id=user_id, created_at=now)

    async def list_assignments(self, task_id: str) -> list[TaskAssignment]:
        """Direct assignments of a task."""
        task_id = str((await self._get_task(task_id))["_id"])
        cursor = self.task_assignments.find({"task_id": task_id})
        docs = await cursor.to_list(length=None)
        return [
            TaskAssignment(task_id=doc["task_id"], user_id=doc["user_id"], created_at=doc["created_at"])
            for doc in docs
        ]

    async def unassign_user(self, user_id: str, task_id: str) -> UnassignResult:
        """
        Remove a user's assignment and cascade the removal to subtasks.

        The cascade is best effort: its failures are logged and the
        unassignment still succeeds.

        Raises:
            NotFoundError: If the user is not assigned to the task
        """
        user_id = canonical_id(user_id)
        task_id = canonical_id(task_id)
        result = await self.task_assignments.delete_one({
            "task_id": task_id,
            "user_id": user_id,
        })

        if result.deleted_count == 0:
            raise NotFoundError("User is not assigned to this task")

        logger.info("Removed user %s from task %s", user_id, task_id)

        cascaded = 0
        try:
            cascaded = await self.cascade.on_unassign(user_id, task_id)
        except Exception:
            logger.exception("Subtask cascade failed for user %s on task %s", user_id, task_id)

        return UnassignResult(deleted_count=result.deleted_count, cascaded_subtasks_updated=cascaded)

    async def assign_general_tasks(self, user_id: str) -> int:
        """
        Assign every live system ("General") task to an active user.

        Returns:
            Number of new assignments created

        Raises:
            NotFoundError: If the user doesn't exist
            ValidationError: If the user is inactive
        """
        user = await self._get_user(user_id)
        user_id = str(user["_id"])
        if user.get("status", UserStatus.ACTIVE.value) != UserStatus.ACTIVE.value:
            raise ValidationError("Only active users receive default task assignments")

        system_tasks = await self.tasks.find({
            "is_system": True,
            "archived": {"$ne": True},
        }).to_list(length=None)

        existing = await self.task_assignments.distinct("task_id", {"user_id": user_id})
        already_assigned = set(existing)

        created = 0
        now = self.clock()
        for task in system_tasks:
            task_id = str(task["_id"])
            if task_id in already_assigned:
                continue
            try:
                await self.task_assignments.insert_one({
                    "task_id": task_id,
                    "user_id": user_id,
                    "created_at": now,
                })
            except DuplicateKeyError:
                # Assigned concurrently; nothing to do
                continue
            created += 1

        logger.info("Assigned %d general tasks to user %s", created, user_id)
        return created
