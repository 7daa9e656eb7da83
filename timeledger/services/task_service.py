"""Task service - task lookups and status changes."""
from timeledger.errors import NotFoundError
from timeledger.models.task import Task, TaskStatus
from timeledger.utils.ids import parse_object_id


class TaskService:
    """Service for handling task operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.tasks = db["tasks"]
        self.task_assignments = db["task_assignments"]

    def _doc_to_task(self, doc: dict) -> Task:
        """Convert database document to Task model."""
        return Task(
            _id=str(doc["_id"]),
            name=doc["name"],
            project_id=doc["project_id"],
            team_id=doc.get("team_id"),
            status=doc.get("status", TaskStatus.PENDING.value),
            archived=doc.get("archived", False),
            is_system=doc.get("is_system", False),
        )

    async def get_task(self, task_id: str) -> Task:
        """
        Get a task by ID.

        Raises:
            NotFoundError: If task not found
        """
        doc = await self.tasks.find_one({"_id": parse_object_id(task_id, "task")})
        if not doc:
            raise NotFoundError("Task not found")
        return self._doc_to_task(doc)

    async def list_user_tasks(self, user_id: str, include_system: bool = False) -> list[Task]:
        """
        Tasks directly assigned to a user.

        Archived tasks are never listed; system tasks only on request.
        """
        task_ids = await self.task_assignments.distinct("task_id", {"user_id": user_id})
        query = {
            "_id": {"$in": [parse_object_id(task_id, "task") for task_id in task_ids]},
            "archived": {"$ne": True},
        }
        if not include_system:
            query["is_system"] = {"$ne": True}

        cursor = self.tasks.find(query).sort("name", 1)
        docs = await cursor.to_list(length=None)
        return [self._doc_to_task(doc) for doc in docs]

    async def update_status(self, task_id: str, status: TaskStatus) -> Task:
        """
        Change a task's status.

        Raises:
            NotFoundError: If task not found
        """
        updated = await self.tasks.find_one_and_update(
            {"_id": parse_object_id(task_id, "task")},
            {"$set": {"status": status.value}},
            return_document=True,
        )
        if not updated:
            raise NotFoundError("Task not found")
        return self._doc_to_task(updated)
