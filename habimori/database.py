"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from habimori.config import settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Connect to MongoDB.

        Datetimes come back timezone-aware in the configured zone so they
        compare directly against period boundaries.
        """
        self.client = AsyncIOMotorClient(
            settings.mongodb_url,
            tz_aware=True,
            tzinfo=settings.tzinfo,
        )
        self.db = self.client[settings.mongodb_db_name]
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


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the services rely on."""
    await db["users"].create_index("email", unique=True)
    await db["contexts"].create_index([("user_id", 1), ("name", 1)])
    await db["tags"].create_index([("user_id", 1), ("name", 1)])
    await db["goals"].create_index([("user_id", 1), ("created_at", 1)])
    await db["goal_periods"].create_index(
        [("goal_id", 1), ("period_start", 1), ("period_end", 1)],
        unique=True,
    )
    await db["time_entries"].create_index([("user_id", 1), ("started_at", -1)])
    await db["time_entries"].create_index([("goal_id", 1), ("started_at", 1)])
    # At most one running timer per user
    await db["time_entries"].create_index(
        "user_id",
        unique=True,
        partialFilterExpression={"ended_at": {"$type": "null"}},
        name="one_running_timer_per_user",
    )
    await db["counter_events"].create_index([("goal_id", 1), ("occurred_at", 1)])
    await db["check_events"].create_index([("goal_id", 1), ("occurred_at", 1)])
    logger.info("MongoDB indexes ensured")
