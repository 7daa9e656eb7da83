"""Subtask cascade - propagates task unassignment to subtask assignees."""
import json
import logging
from datetime import datetime
from typing import Callable, Optional

from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

from timeledger.models.subtask import LegacySubtask, Subtask
from timeledger.utils.timezone import utcnow

logger = logging.getLogger(__name__)

SUBTASK_DISCUSSION = "subtask"


class SubtaskCascade:
    """
    Removes a user from the subtasks of a task.

    Subtasks live in the ``subtasks`` collection with assignees stored as
    user ids. Discussions that still carry the serialized ``subtask_data``
    blob (assignees stored by name) are handled too until they are migrated
    with ``migrate_legacy_blobs``.
    """

    def __init__(self, db, clock: Optional[Callable[[], datetime]] = None):
        """Initialize cascade with database connection."""
        self.db = db
        self.users = db["users"]
        self.subtasks = db["subtasks"]
        self.task_discussions = db["task_discussions"]
        self.clock = clock or utcnow

    async def on_unassign(self, user_id: str, task_id: str, user_name: Optional[str] = None) -> int:
        """
        Remove the user from every subtask of the task.

        A failed write to one record is logged and skipped; the returned count
        covers only the records actually updated.

        Args:
            user_id: User that was unassigned
            task_id: Task the user was removed from
            user_name: Name used in legacy blobs (looked up when omitted)

        Returns:
            Number of subtask documents and legacy discussions updated
        """
        updated = 0
        try:
            result = await self.subtasks.update_many(
                {"task_id": task_id, "assignee_ids": user_id},
                {"$pull": {"assignee_ids": user_id}, "$set": {"updated_at": self.clock()}},
            )
            updated = result.modified_count
        except PyMongoError:
            logger.exception("Failed to pull user %s from subtasks of task %s", user_id, task_id)

        if user_name is None:
            user_name = await self._user_name(user_id)
        if user_name:
            updated += await self._cascade_legacy_blobs(user_name, task_id)

        logger.info(
            "Cascaded removal of user %s from task %s: %d subtask records updated",
            user_id, task_id, updated,
        )
        return updated

    async def _user_name(self, user_id: str) -> Optional[str]:
        user = None
        if ObjectId.is_valid(user_id):
            user = await self.users.find_one({"_id": ObjectId(user_id)})
        if not user:
            logger.warning("User %s not found, skipping legacy subtask cleanup", user_id)
            return None
        return user.get("name")

    async def _cascade_legacy_blobs(self, user_name: str, task_id: str) -> int:
        cursor = self.task_discussions.find({"task_id": task_id, "type": SUBTASK_DISCUSSION})
        discussions = await cursor.to_list(length=None)

        updated = 0
        for discussion in discussions:
            raw = discussion.get("subtask_data")
            if not raw:
                continue
            try:
                data = json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                logger.error("Malformed subtask data on discussion %s, skipping", discussion["_id"])
                continue

            if not _remove_assignee(data, user_name):
                continue

            try:
                await self.task_discussions.update_one(
                    {"_id": discussion["_id"]},
                    {"$set": {"subtask_data": json.dumps(data), "updated_at": self.clock()}},
                )
            except PyMongoError:
                logger.exception("Failed to update subtask data on discussion %s", discussion["_id"])
                continue
            updated += 1

        return updated

    async def migrate_legacy_blobs(self, task_id: Optional[str] = None) -> list[Subtask]:
        """
        Move subtasks out of discussion blobs into the ``subtasks`` collection.

        Assignee names are resolved to user ids; names with no matching user
        are dropped and logged. Migrated discussions lose their blob.

        Returns:
            The subtasks created
        """
        query = {"type": SUBTASK_DISCUSSION, "subtask_data": {"$nin": [None, ""]}}
        if task_id:
            query["task_id"] = task_id
        discussions = await self.task_discussions.find(query).to_list(length=None)

        created: list[Subtask] = []
        for discussion in discussions:
            try:
                data = json.loads(discussion["subtask_data"])
                items = [LegacySubtask.model_validate(item) for item in data.get("subtasks", [])]
            except (json.JSONDecodeError, TypeError, AttributeError, PydanticValidationError):
                logger.error("Malformed subtask data on discussion %s, not migrated", discussion["_id"])
                continue

            now = self.clock()
            for item in items:
                assignee_ids = await self._resolve_names(item.assignees)
                subtask_doc = {
                    "task_id": discussion["task_id"],
                    "discussion_id": str(discussion["_id"]),
                    "title": item.title,
                    "assignee_ids": assignee_ids,
                    "created_at": now,
                    "updated_at": now,
                }
                result = await self.subtasks.insert_one(subtask_doc)
                created.append(Subtask(
                    _id=str(result.inserted_id),
                    task_id=subtask_doc["task_id"],
                    title=subtask_doc["title"],
                    assignee_ids=assignee_ids,
                    discussion_id=subtask_doc["discussion_id"],
                ))

            await self.task_discussions.update_one(
                {"_id": discussion["_id"]},
                {"$set": {"subtask_data": None, "updated_at": now}},
            )

        logger.info("Migrated %d subtasks out of discussion blobs", len(created))
        return created

    async def _resolve_names(self, names: list[str]) -> list[str]:
        ids = []
        for name in names:
            user = await self.users.find_one({"name": name})
            if user:
                ids.append(str(user["_id"]))
            else:
                logger.warning("No user named %r; dropping subtask assignee", name)
        return ids


def _remove_assignee(data, user_name: str) -> bool:
    """Drop ``user_name`` from every assignee list in a blob. True if changed."""
    if not isinstance(data, dict) or not isinstance(data.get("subtasks"), list):
        return False

    changed = False
    for subtask in data["subtasks"]:
        if not isinstance(subtask, dict):
            continue
        assignees = subtask.get("assignees")
        if isinstance(assignees, list) and user_name in assignees:
            subtask["assignees"] = [name for name in assignees if name != user_name]
            changed = True
    return changed
