"""Tests for TaskService."""
import pytest
from bson import ObjectId

TASK_ID = str(ObjectId())


def task_doc(**overrides):
    doc = {
        "_id": ObjectId(TASK_ID),
        "name": "Build API",
        "project_id": str(ObjectId()),
        "team_id": None,
        "status": "pending",
        "archived": False,
        "is_system": False,
    }
    doc.update(overrides)
    return doc


@pytest.mark.asyncio
class TestTaskService:
    """Tests for task lookups and status changes."""

    async def test_get_task(self, mock_db):
        """Test fetching a task by id."""
        from timeledger.services.task_service import TaskService

        mock_db["tasks"].find_one.return_value = task_doc()

        task = await TaskService(mock_db).get_task(TASK_ID)

        assert task.id == TASK_ID
        assert task.status.value == "pending"

    async def test_get_task_not_found(self, mock_db):
        """Test a missing task fails."""
        from timeledger.errors import NotFoundError
        from timeledger.services.task_service import TaskService

        mock_db["tasks"].find_one.return_value = None

        with pytest.raises(NotFoundError):
            await TaskService(mock_db).get_task(TASK_ID)

    async def test_list_user_tasks_hides_system_tasks(self, mock_db):
        """Test the listing query excludes archived and system tasks."""
        from timeledger.services.task_service import TaskService

        mock_db["task_assignments"].distinct.return_value = [TASK_ID]
        mock_db["tasks"].find.return_value.to_list.return_value = [task_doc()]

        tasks = await TaskService(mock_db).list_user_tasks("user123")

        assert [task.name for task in tasks] == ["Build API"]
        query = mock_db["tasks"].find.call_args[0][0]
        assert query["_id"] == {"$in": [ObjectId(TASK_ID)]}
        assert query["archived"] == {"$ne": True}
        assert query["is_system"] == {"$ne": True}

    async def test_list_user_tasks_with_system(self, mock_db):
        """Test system tasks can be requested."""
        from timeledger.services.task_service import TaskService

        await TaskService(mock_db).list_user_tasks("user123", include_system=True)

        query = mock_db["tasks"].find.call_args[0][0]
        assert "is_system" not in query

    async def test_update_status(self, mock_db):
        """Test changing a task's status."""
        from timeledger.models.task import TaskStatus
        from timeledger.services.task_service import TaskService

        mock_db["tasks"].find_one_and_update.return_value = task_doc(status="completed")

        task = await TaskService(mock_db).update_status(TASK_ID, TaskStatus.COMPLETED)

        assert task.status == TaskStatus.COMPLETED
        _, update = mock_db["tasks"].find_one_and_update.call_args[0]
        assert update == {"$set": {"status": "completed"}}
