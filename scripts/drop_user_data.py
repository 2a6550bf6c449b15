"""Drop all data for a specific user."""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient

from habimori.config import settings

USER_COLLECTIONS = [
    "time_entries",
    "counter_events",
    "check_events",
    "goals",
    "contexts",
    "tags",
]


async def drop_user_data(mongodb_url: str, user_id: str):
    """Delete all documents for a user, including their goal periods."""
    client = AsyncIOMotorClient(mongodb_url)
    db = client[settings.mongodb_db_name]

    goal_docs = await db["goals"].find({"user_id": user_id}, {"_id": 1}).to_list(length=None)
    goal_ids = [str(doc["_id"]) for doc in goal_docs]
    result = await db["goal_periods"].delete_many({"goal_id": {"$in": goal_ids}})
    print(f"Deleted {result.deleted_count} documents from goal_periods")

    for collection_name in USER_COLLECTIONS:
        result = await db[collection_name].delete_many({"user_id": user_id})
        print(f"Deleted {result.deleted_count} documents from {collection_name}")

    if ObjectId.is_valid(user_id):
        result = await db["users"].delete_one({"_id": ObjectId(user_id)})
        print(f"Deleted {result.deleted_count} documents from users")

    client.close()
    print("Done!")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python drop_user_data.py <mongodb_url> <user_id>")
        sys.exit(1)

    asyncio.run(drop_user_data(sys.argv[1], sys.argv[2]))
