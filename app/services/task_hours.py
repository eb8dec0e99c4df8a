"""Task hours aggregator - keeps Task.actual_hours in sync with time entries."""
import logging

from bson import ObjectId
from bson.errors import InvalidId

from app.utils.clock import Clock, utcnow
from app.utils.durations import round_hours

logger = logging.getLogger(__name__)


class TaskHoursAggregator:
    """
    Recomputes a task's actual hours from its closed time entries.

    Entries can be edited and deleted after they are created, so the total is
    always rebuilt from scratch rather than adjusted by a delta.
    """

    def __init__(self, db, clock: Clock = utcnow):
        """Initialize aggregator with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.tasks = db["tasks"]
        self.clock = clock

    async def total_tracked_seconds(self, task_id: str) -> int:
        """Sum of durations over every closed entry of a task."""
        pipeline = [
            {"$match": {"task_id": task_id, "end_time": {"$ne": None}}},
            {"$group": {"_id": None, "total_duration": {"$sum": "$duration"}}},
        ]
        result = await self.time_entries.aggregate(pipeline).to_list(length=None)
        return result[0]["total_duration"] if result else 0

    async def recompute_actual_hours(self, task_id: str) -> float:
        """
        Recompute and persist a task's actual hours.

        Args:
            task_id: Task ID

        Returns:
            The stored actual hours, rounded to two decimals
        """
        actual_hours = round_hours(await self.total_tracked_seconds(task_id))

        try:
            object_id = ObjectId(task_id)
        except (InvalidId, TypeError):
            logger.warning("Skipping rollup for malformed task id %r", task_id)
            return actual_hours

        await self.tasks.update_one(
            {"_id": object_id},
            {"$set": {"actual_hours": actual_hours, "updated_at": self.clock()}},
        )
        logger.info("Task %s actual hours set to %.2f", task_id, actual_hours)

        return actual_hours
