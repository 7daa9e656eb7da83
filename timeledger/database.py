"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING

from timeledger.config import settings
from timeledger.errors import InternalError

logger = logging.getLogger(__name__)

RUNNING_TIMER_INDEX = "one_running_timer_per_user"


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Connect to MongoDB and make sure the indexes exist."""
        self.client = AsyncIOMotorClient(settings.mongodb_url)
        self.db = self.client[settings.mongodb_db_name]
        logger.info("Connected to MongoDB: %s", settings.mongodb_db_name)
        await ensure_indexes(self.db)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def get_collection(self, name: str):
        """Get a MongoDB collection."""
        if self.db is None:
            raise InternalError("Database not connected")
        return self.db[name]


async def ensure_indexes(db) -> None:
    """
    Create the indexes the services rely on.

    The partial unique index on ``time_entries.user_id`` is what makes
    "one running timer per user" hold under concurrent starts: only
    documents flagged ``running`` participate, so a second insert for the
    same user fails with ``DuplicateKeyError``.
    """
    time_entries = db["time_entries"]
    await time_entries.create_index(
        [("user_id", ASCENDING)],
        name=RUNNING_TIMER_INDEX,
        unique=True,
        partialFilterExpression={"running": True},
    )
    await time_entries.create_index([("user_id", ASCENDING), ("start_time", ASCENDING)])
    await time_entries.create_index([("user_id", ASCENDING), ("created_at", ASCENDING)])

    await db["task_assignments"].create_index(
        [("task_id", ASCENDING), ("user_id", ASCENDING)],
        unique=True,
    )
    await db["team_members"].create_index(
        [("team_id", ASCENDING), ("user_id", ASCENDING)],
        unique=True,
    )
    await db["subtasks"].create_index([("task_id", ASCENDING)])


# Global database instance
database = Database()


async def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    if database.db is None:
        raise InternalError("Database not connected")
    return database.db
