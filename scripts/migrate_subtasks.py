"""One-time migration script: move subtasks out of discussion blobs.

Reads the serialized ``subtask_data`` of subtask discussions, creates one
``subtasks`` document per item with assignee names resolved to user ids,
and clears the blob.

Usage:
    python scripts/migrate_subtasks.py \\
        --mongodb-url mongodb://localhost:27017 \\
        [--db-name timeledger] [--task-id <task-id>]
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from timeledger.logging_config import setup_logging
from timeledger.services.cascade_service import SubtaskCascade

logger = logging.getLogger("migrate_subtasks")


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Migrate legacy subtask blobs")
    parser.add_argument(
        "--mongodb-url",
        default="mongodb://localhost:27017",
        help="MongoDB connection URL",
    )
    parser.add_argument(
        "--db-name",
        default="timeledger",
        help="Database name",
    )
    parser.add_argument(
        "--task-id",
        default=None,
        help="Only migrate discussions of this task",
    )

    args = parser.parse_args()
    setup_logging()

    client = AsyncIOMotorClient(args.mongodb_url)
    try:
        created = await SubtaskCascade(client[args.db_name]).migrate_legacy_blobs(task_id=args.task_id)
    finally:
        client.close()

    logger.info("Done: %d subtasks created", len(created))


if __name__ == "__main__":
    asyncio.run(main())
