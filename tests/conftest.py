"""Pytest configuration and fixtures."""
import os

# Settings are read at import time; give the test run something to work with
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret")

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from timeledger.config import settings
from timeledger.database import database, ensure_indexes
from timeledger.main import app
from timeledger.utils.auth import create_access_token
from timeledger.utils.timezone import utcnow


def _mock_collection() -> MagicMock:
    """A Motor collection stand-in: awaitable writes, sync find() with an async cursor."""
    collection = MagicMock()
    for method in (
        "find_one",
        "insert_one",
        "update_one",
        "update_many",
        "delete_one",
        "find_one_and_update",
        "distinct",
    ):
        setattr(collection, method, AsyncMock())
    collection.distinct.return_value = []

    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor
    return collection


@pytest.fixture
def mock_db():
    """
    A database mock handing out one collection mock per name.

    ``mock_db["time_entries"]`` always returns the same object, so tests can
    configure it before the service under test is created.
    """
    collections = {}
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections.setdefault(name, _mock_collection())
    return db


@pytest_asyncio.fixture
async def test_db():
    """
    A throwaway MongoDB database with the production indexes.

    Skips the test when no MongoDB server is reachable.
    """
    test_client = AsyncIOMotorClient(settings.mongodb_url, serverSelectionTimeoutMS=1000)
    try:
        await test_client.admin.command("ping")
    except PyMongoError:
        test_client.close()
        pytest.skip("MongoDB is not available")

    test_db_name = f"{settings.mongodb_db_name}_test"
    db = test_client[test_db_name]
    await ensure_indexes(db)

    yield db

    # Cleanup: drop test database
    await test_client.drop_database(test_db_name)
    test_client.close()


@pytest_asyncio.fixture
async def app_client(test_db):
    """
    Create a test client bound to the test database.

    This fixture:
    - Points the database dependency at the test database
    - Yields an async HTTP client for testing
    - Restores the original database afterwards
    """
    original_db = database.db
    database.db = test_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    database.db = original_db


@pytest.fixture
def make_user(test_db):
    """Factory inserting a user; returns (user_id, auth headers)."""

    async def _make_user(name: str, role: str = "user", pay_rate=None) -> tuple[str, dict]:
        result = await test_db["users"].insert_one({
            "email": f"{name.lower()}@example.com",
            "name": name,
            "role": role,
            "status": "active",
            "pay_rate": pay_rate,
            "created_at": utcnow(),
        })
        user_id = str(result.inserted_id)
        token = create_access_token(user_id=user_id)
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make_user


@pytest.fixture
def make_task(test_db):
    """Factory inserting a client, project and task; returns the task id."""

    async def _make_task(
        name: str = "Build API",
        project_name: str = "Website",
        client_name: str = "Acme",
        **task_fields,
    ) -> str:
        client = await test_db["clients"].insert_one({"name": client_name, "archived": False})
        project = await test_db["projects"].insert_one({
            "name": project_name,
            "client_id": str(client.inserted_id),
            "archived": False,
        })
        task = await test_db["tasks"].insert_one({
            "name": name,
            "project_id": str(project.inserted_id),
            "team_id": None,
            "status": "pending",
            "archived": False,
            "is_system": False,
            **task_fields,
        })
        return str(task.inserted_id)

    return _make_task
