"""Rebuild Task.actual_hours from time entries.

Usage:
    python scripts/recompute_actual_hours.py            # every task
    python scripts/recompute_actual_hours.py --task-id <task-id>
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from app.config import settings
from app.services.task_hours import TaskHoursAggregator


async def recompute(mongodb_url: str, db_name: str, task_id: Optional[str] = None) -> int:
    """Recompute actual hours for one task or all tasks. Returns the task count."""
    client = AsyncIOMotorClient(mongodb_url)
    db = client[db_name]
    aggregator = TaskHoursAggregator(db)

    try:
        if task_id:
            task_ids = [task_id]
        else:
            task_ids = [str(doc["_id"]) async for doc in db["tasks"].find({}, {"_id": 1})]

        for current_id in task_ids:
            hours = await aggregator.recompute_actual_hours(current_id)
            print(f"{current_id}: {hours:.2f}h")
    finally:
        client.close()

    return len(task_ids)


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute task actual hours")
    parser.add_argument("--task-id", help="Only recompute this task")
    parser.add_argument("--mongodb-url", default=settings.mongodb_url)
    parser.add_argument("--db-name", default=settings.mongodb_db_name)
    args = parser.parse_args()

    count = asyncio.run(recompute(args.mongodb_url, args.db_name, args.task_id))
    print(f"Recomputed {count} task(s)")


if __name__ == "__main__":
    main()
