"""Timer service - starting and stopping a user's live timer."""
import logging
from typing import Optional

from app.errors import ActiveTimerConflictError
from app.models.time_entry import TimeEntry
from app.models.user import User
from app.services.time_entry_store import TimeEntryStore
from app.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class TimerService:
    """Service for handling live timer operations."""

    def __init__(self, db, clock: Clock = utcnow):
        """Initialize service with database connection."""
        self.db = db
        self.clock = clock
        self.store = TimeEntryStore(db, clock=clock)

    async def start_timer(
        self,
        user: User,
        task_id: str,
        description: str = "",
        billable: bool = True,
    ) -> TimeEntry:
        """
        Start a new timer on a task.

        Args:
            user: Acting user
            task_id: Task ID
            description: Optional description
            billable: Whether the tracked time is billable

        Returns:
            Created running time entry

        Raises:
            NotFoundError: If the task doesn't exist
            AccessDeniedError: If the user is not assignee, creator or admin
            ActiveTimerConflictError: If the user already has a running timer
        """
        task_doc = await self.store.tasks.get_trackable_task(user, task_id)

        # An existing timer is reported, never auto-stopped
        active = await self.store.find_active(user.id)
        if active:
            raise ActiveTimerConflictError(active)

        now = self.clock()
        entry_doc = {
            "user_id": user.id,
            "task_id": str(task_doc["_id"]),
            "project_id": task_doc["project_id"],
            "description": description,
            "start_time": now,
            "end_time": None,
            "duration": 0,
            "is_manual": False,
            "is_running": True,
            "billable": billable,
            "hourly_rate": user.hourly_rate or 0.0,
            "tags": [],
            "created_at": now,
            "updated_at": now,
        }

        entry = await self.store.insert_running(entry_doc)
        logger.info("User %s started timer %s on task %s", user.id, entry.id, entry.task_id)

        return entry

    async def stop_timer(self, user: User, entry_id: str) -> TimeEntry:
        """
        Stop one of the user's running timers.

        Args:
            user: Acting user
            entry_id: Time entry ID

        Returns:
            Finalized time entry with end_time and duration

        Raises:
            NotFoundError: If no running entry with that id belongs to the user
        """
        entry = await self.store.close_running(user, entry_id)
        logger.info(
            "User %s stopped timer %s after %d seconds", user.id, entry.id, entry.duration
        )
        return entry

    async def get_active_timer(self, user: User) -> Optional[TimeEntry]:
        """
        Get the currently running timer, if any.

        Returns:
            Current running time entry, or None
        """
        return await self.store.find_active(user.id)
