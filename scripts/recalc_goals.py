"""Recalculate stored goal periods.

Past periods stay ``in_progress`` until their goal is recalculated after the
period ended, so this is meant to run periodically (e.g. nightly).

Usage:
    python scripts/recalc_goals.py [--user-id <user-id>] [--goal-id <goal-id>]
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from habimori.config import settings
from habimori.services.goal_period_service import GoalPeriodService


class GoalRecalculator:
    """Recalculates the periods of every matching goal."""

    def __init__(self, mongodb_url: str, db_name: str, user_id: Optional[str] = None):
        self.mongodb_url = mongodb_url
        self.db_name = db_name
        self.user_id = user_id
        self.client: Optional[AsyncIOMotorClient] = None
        self.db = None
        self.stats = {"total": 0, "success": 0, "failed": 0, "periods": 0}

    async def connect(self):
        """Connect to MongoDB."""
        self.client = AsyncIOMotorClient(self.mongodb_url, tz_aware=True, tzinfo=settings.tzinfo)
        self.db = self.client[self.db_name]
        print(f"Connected to MongoDB: {self.db_name}")

    async def close(self):
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            print("Closed MongoDB connection")

    async def goal_ids(self, goal_id: Optional[str] = None) -> list[str]:
        if goal_id:
            return [goal_id]
        query = {"is_archived": False}
        if self.user_id:
            query["user_id"] = self.user_id
        docs = await self.db["goals"].find(query, {"_id": 1}).to_list(length=None)
        return [str(doc["_id"]) for doc in docs]

    async def run(self, goal_id: Optional[str] = None):
        """Run recalculation."""
        await self.connect()

        try:
            service = GoalPeriodService(self.db)
            for current_id in await self.goal_ids(goal_id):
                self.stats["total"] += 1
                result = await service.recalc(current_id)
                if result.error:
                    self.stats["failed"] += 1
                    print(f"  ✗ {current_id}: {result.error}")
                else:
                    self.stats["success"] += 1
                    self.stats["periods"] += result.periods_written
                    print(f"  ✓ {current_id} ({result.periods_written} periods)")

            print("\n=== Recalculation Summary ===")
            print(f"  Goals: {self.stats['total']}")
            print(f"  Success: {self.stats['success']}")
            print(f"  Failed: {self.stats['failed']}")
            print(f"  Periods written: {self.stats['periods']}")

        finally:
            await self.close()


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Recalculate goal periods")
    parser.add_argument(
        "--mongodb-url",
        default=settings.mongodb_url,
        help="MongoDB connection URL",
    )
    parser.add_argument(
        "--db-name",
        default=settings.mongodb_db_name,
        help="Database name",
    )
    parser.add_argument(
        "--user-id",
        help="Only recalculate this user's goals",
    )
    parser.add_argument(
        "--goal-id",
        help="Only recalculate this goal",
    )

    args = parser.parse_args()

    recalculator = GoalRecalculator(
        mongodb_url=args.mongodb_url,
        db_name=args.db_name,
        user_id=args.user_id,
    )

    await recalculator.run(goal_id=args.goal_id)


if __name__ == "__main__":
    asyncio.run(main())
