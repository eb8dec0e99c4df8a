"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.config import settings

logger = logging.getLogger(__name__)

RUNNING_TIMER_INDEX = "one_running_timer_per_user"


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """
    Create the indexes the time tracking queries rely on.

    The partial unique index on running entries is what keeps a user from
    ever holding two running timers, even when two start requests race.
    """
    time_entries = db["time_entries"]
    await time_entries.create_index([("user_id", ASCENDING), ("start_time", DESCENDING)])
    await time_entries.create_index("task_id")
    await time_entries.create_index("project_id")
    await time_entries.create_index([("start_time", ASCENDING), ("end_time", ASCENDING)])
    await time_entries.create_index(
        "user_id",
        name=RUNNING_TIMER_INDEX,
        unique=True,
        partialFilterExpression={"is_running": True},
    )
    await db["users"].create_index("email", unique=True)


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Connect to MongoDB and make sure indexes exist."""
        self.client = AsyncIOMotorClient(settings.mongodb_url)
        self.db = self.client[settings.mongodb_db_name]
        await ensure_indexes(self.db)
        logger.info("Connected to MongoDB: %s", settings.mongodb_db_name)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")


# Global database instance
database = Database()


async def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    if database.db is None:
        raise RuntimeError("Database not connected")
    return database.db
