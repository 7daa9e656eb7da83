"""One-time repair script: normalize legacy time entries.

Entries that store a manual duration next to start/end timestamps are
rewritten to the duration alone, so reports never count them twice.
Also adds the indexes the API relies on, so the usual settings
(MONGODB_URL, JWT_SECRET or a .env file) must be available.

Usage:
    python scripts/normalize_entries.py \\
        --mongodb-url mongodb://localhost:27017 \\
        [--db-name timeledger] [--user-id <user-id>]
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from timeledger.database import ensure_indexes
from timeledger.logging_config import setup_logging
from timeledger.services.timer_service import TimerService

logger = logging.getLogger("normalize_entries")


async def normalize(mongodb_url: str, db_name: str, user_id: str | None) -> int:
    """Normalize entries, then make sure the running-timer index exists."""
    client = AsyncIOMotorClient(mongodb_url)
    try:
        db = client[db_name]
        repaired = await TimerService(db).normalize_legacy_entries(user_id=user_id)
        # The index can only be built once no user has two running entries
        await ensure_indexes(db)
        return repaired
    finally:
        client.close()


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Normalize legacy time entries")
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
        "--user-id",
        default=None,
        help="Only repair this user's entries",
    )

    args = parser.parse_args()
    setup_logging()

    repaired = await normalize(args.mongodb_url, args.db_name, args.user_id)
    logger.info("Done: %d entries repaired", repaired)


if __name__ == "__main__":
    asyncio.run(main())
