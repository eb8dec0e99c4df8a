"""Time entry store - persistence and invariants for tracked intervals."""
import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.errors import (
    AccessDeniedError,
    ActiveTimerConflictError,
    CannotDeleteRunningError,
    CannotEditRunningError,
    InvalidRangeError,
    NotFoundError,
    OverlappingEntryError,
)
from app.models.time_entry import (
    Pagination,
    SortOrder,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryFilters,
    TimeEntryPage,
    TimeEntryTotals,
    TimeEntryUpdate,
)
from app.models.user import User
from app.services.task_hours import TaskHoursAggregator
from app.services.task_service import TaskService
from app.utils.clock import Clock, to_storage_time, utcnow
from app.utils.durations import duration_seconds
from app.utils.ids import parse_object_id
from app.utils.permissions import can_modify_entry, can_view_all_entries

logger = logging.getLogger(__name__)

# Smallest step Mongo can store
CLOSE_RESOLUTION = timedelta(milliseconds=1)

# Mongo expression for the earnings of one entry document
EARNINGS_EXPR = {
    "$cond": [
        "$billable",
        {"$multiply": [{"$divide": ["$duration", 3600]}, "$hourly_rate"]},
        0,
    ]
}


def closing_time(start_time: datetime, now: datetime) -> datetime:
    """End time for a running entry closed at now; always after start_time."""
    if now <= start_time:
        return start_time + CLOSE_RESOLUTION
    return now


class TimeEntryStore:
    """Store for time entries: creation, edits, deletes and listings."""

    def __init__(self, db, clock: Clock = utcnow):
        """Initialize store with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.clock = clock
        self.tasks = TaskService(db)
        self.aggregator = TaskHoursAggregator(db, clock=clock)

    def _doc_to_entry(self, doc: dict) -> TimeEntry:
        """Convert database document to TimeEntry model."""
        return TimeEntry(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            task_id=doc["task_id"],
            project_id=doc["project_id"],
            description=doc.get("description", ""),
            start_time=doc["start_time"],
            end_time=doc.get("end_time"),
            duration=doc.get("duration", 0),
            is_manual=doc.get("is_manual", False),
            is_running=doc.get("is_running", False),
            billable=doc.get("billable", True),
            hourly_rate=doc.get("hourly_rate", 0.0),
            tags=doc.get("tags", []),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def find_active(self, user_id: str) -> Optional[TimeEntry]:
        """Return the user's running entry, if any."""
        running = await self.time_entries.find_one({
            "user_id": user_id,
            "is_running": True,
        })

        if not running:
            return None

        return self._doc_to_entry(running)

    async def _close_other_running(self, user_id: str, start_time: datetime) -> None:
        """
        Force-close every running entry of a user at start_time.

        An entry that started after start_time is closed at its own start, so
        the closed range is never negative.
        """
        cursor = self.time_entries.find({"user_id": user_id, "is_running": True})
        running_docs = await cursor.to_list(length=None)

        for doc in running_docs:
            end_time = closing_time(doc["start_time"], start_time)
            closed = await self.time_entries.find_one_and_update(
                {"_id": doc["_id"], "is_running": True},
                {"$set": {
                    "end_time": end_time,
                    "is_running": False,
                    "duration": duration_seconds(doc["start_time"], end_time),
                    "updated_at": self.clock(),
                }},
                return_document=True,
            )
            if closed:
                logger.warning(
                    "Force-closed running timer %s for user %s before starting a new one",
                    closed["_id"],
                    user_id,
                )
                await self.aggregator.recompute_actual_hours(closed["task_id"])

    async def insert_running(self, entry_doc: dict) -> TimeEntry:
        """
        Persist a new running entry.

        Any other running entry of the same user is closed first. The partial
        unique index on running entries rejects a concurrent insert that slips
        in between, which is reported as an active timer conflict.

        Args:
            entry_doc: Fully built running entry document

        Returns:
            Created time entry

        Raises:
            ActiveTimerConflictError: If another running entry won the race
        """
        await self._close_other_running(entry_doc["user_id"], entry_doc["start_time"])

        try:
            result = await self.time_entries.insert_one(entry_doc)
        except DuplicateKeyError:
            logger.warning(
                "Concurrent timer start for user %s rejected by unique index",
                entry_doc["user_id"],
            )
            raise ActiveTimerConflictError(await self.find_active(entry_doc["user_id"]))

        entry_doc["_id"] = result.inserted_id
        return self._doc_to_entry(entry_doc)

    async def close_running(self, user: User, entry_id: str) -> TimeEntry:
        """
        Finalize a running entry owned by the user.

        Entries that are missing, already closed or owned by someone else are
        all reported as not found.

        Raises:
            NotFoundError: If no matching running entry exists
        """
        object_id = parse_object_id(entry_id, "Active timer not found")
        running = await self.time_entries.find_one({
            "_id": object_id,
            "user_id": user.id,
            "is_running": True,
        })

        if not running:
            raise NotFoundError("Active timer not found")

        end_time = closing_time(running["start_time"], self.clock())
        stopped = await self.time_entries.find_one_and_update(
            {"_id": object_id, "is_running": True},
            {"$set": {
                "end_time": end_time,
                "is_running": False,
                "duration": duration_seconds(running["start_time"], end_time),
                "updated_at": self.clock(),
            }},
            return_document=True,
        )

        if not stopped:
            raise NotFoundError("Active timer not found")

        await self.aggregator.recompute_actual_hours(stopped["task_id"])
        return self._doc_to_entry(stopped)

    async def find_overlapping(
        self,
        user_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_id: Optional[ObjectId] = None,
        manual_only: bool = False,
    ) -> Optional[dict]:
        """
        Find an entry of the user intersecting [start_time, end_time].

        Touching boundaries count as overlap. A running entry is treated as
        open-ended, so it overlaps any range ending at or after its start.
        With manual_only, only manual entries are considered.
        """
        query: dict = {
            "user_id": user_id,
            "$or": [
                {"start_time": {"$lte": start_time}, "end_time": {"$gte": start_time}},
                {"start_time": {"$lte": end_time}, "end_time": {"$gte": end_time}},
                {"start_time": {"$gte": start_time}, "end_time": {"$lte": end_time}},
                {"is_running": True, "start_time": {"$lte": end_time}},
            ],
        }
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if manual_only:
            query["is_manual"] = True

        return await self.time_entries.find_one(query)

    async def create_manual_entry(
        self,
        user: User,
        entry_create: TimeEntryCreate,
    ) -> TimeEntry:
        """
        Create a closed, backfilled time entry.

        Args:
            user: Acting user
            entry_create: Manual entry data

        Returns:
            Created time entry

        Raises:
            InvalidRangeError: If end_time is not after start_time
            NotFoundError: If the task does not exist
            AccessDeniedError: If the user may not track time on the task
            OverlappingEntryError: If the range intersects another entry
        """
        start_time = to_storage_time(entry_create.start_time)
        end_time = to_storage_time(entry_create.end_time)

        if start_time >= end_time:
            raise InvalidRangeError()

        task_doc = await self.tasks.get_trackable_task(user, entry_create.task_id)

        if await self.find_overlapping(user.id, start_time, end_time):
            raise OverlappingEntryError()

        now = self.clock()
        entry_doc = {
            "user_id": user.id,
            "task_id": str(task_doc["_id"]),
            "project_id": task_doc["project_id"],
            "description": entry_create.description,
            "start_time": start_time,
            "end_time": end_time,
            "duration": duration_seconds(start_time, end_time),
            "is_manual": True,
            "is_running": False,
            "billable": entry_create.billable,
            "hourly_rate": user.hourly_rate or 0.0,
            "tags": entry_create.tags,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.time_entries.insert_one(entry_doc)
        entry_doc["_id"] = result.inserted_id
        logger.info("User %s created manual entry %s", user.id, entry_doc["_id"])

        await self.aggregator.recompute_actual_hours(entry_doc["task_id"])
        return self._doc_to_entry(entry_doc)

    async def get_time_entry(self, user: User, entry_id: str) -> TimeEntry:
        """
        Get a single entry visible to the caller.

        Raises:
            NotFoundError: If missing or not visible to the caller
        """
        object_id = parse_object_id(entry_id, "Time entry not found")
        doc = await self.time_entries.find_one({"_id": object_id})

        if not doc or (doc["user_id"] != user.id and not can_view_all_entries(user)):
            raise NotFoundError("Time entry not found")

        return self._doc_to_entry(doc)

    async def _load_modifiable(self, user: User, entry_id: str) -> dict:
        object_id = parse_object_id(entry_id, "Time entry not found")
        existing = await self.time_entries.find_one({"_id": object_id})

        if not existing:
            raise NotFoundError("Time entry not found")

        if not can_modify_entry(user, existing):
            raise AccessDeniedError()

        return existing

    async def update_time_entry(
        self,
        user: User,
        entry_id: str,
        entry_update: TimeEntryUpdate,
    ) -> TimeEntry:
        """
        Update a closed time entry.

        Args:
            user: Acting user
            entry_id: Time entry ID
            entry_update: Fields to change

        Returns:
            Updated time entry

        Raises:
            NotFoundError: If entry not found
            AccessDeniedError: If the caller is neither owner nor admin
            CannotEditRunningError: If the entry is still running
            InvalidRangeError: If the resulting range is not strictly increasing
            OverlappingEntryError: If a manual entry is moved onto another entry
        """
        existing = await self._load_modifiable(user, entry_id)

        if existing.get("is_running"):
            raise CannotEditRunningError()

        update_doc: dict = {"updated_at": self.clock()}

        if entry_update.description is not None:
            update_doc["description"] = entry_update.description
        if entry_update.tags is not None:
            update_doc["tags"] = entry_update.tags
        if entry_update.billable is not None:
            update_doc["billable"] = entry_update.billable
        if entry_update.hourly_rate is not None:
            update_doc["hourly_rate"] = entry_update.hourly_rate

        if entry_update.start_time is not None or entry_update.end_time is not None:
            start_time = (
                to_storage_time(entry_update.start_time)
                if entry_update.start_time is not None
                else existing["start_time"]
            )
            end_time = (
                to_storage_time(entry_update.end_time)
                if entry_update.end_time is not None
                else existing.get("end_time")
            )

            if end_time is None or start_time >= end_time:
                raise InvalidRangeError()

            # Timer entries may overlap each other but never a manual entry
            if await self.find_overlapping(
                existing["user_id"],
                start_time,
                end_time,
                exclude_id=existing["_id"],
                manual_only=not existing.get("is_manual"),
            ):
                raise OverlappingEntryError()

            update_doc["start_time"] = start_time
            update_doc["end_time"] = end_time
            update_doc["duration"] = duration_seconds(start_time, end_time)

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": existing["_id"], "is_running": False},
            {"$set": update_doc},
            return_document=True,
        )

        if not updated_doc:
            raise NotFoundError("Time entry not found")

        logger.info("User %s updated time entry %s", user.id, existing["_id"])
        await self.aggregator.recompute_actual_hours(updated_doc["task_id"])

        return self._doc_to_entry(updated_doc)

    async def delete_time_entry(self, user: User, entry_id: str) -> dict:
        """
        Delete a closed time entry and refresh its task's actual hours.

        Returns:
            Dictionary with deleted_count

        Raises:
            NotFoundError: If entry not found
            AccessDeniedError: If the caller is neither owner nor admin
            CannotDeleteRunningError: If the entry is still running
        """
        existing = await self._load_modifiable(user, entry_id)

        if existing.get("is_running"):
            raise CannotDeleteRunningError()

        result = await self.time_entries.delete_one({
            "_id": existing["_id"],
            "is_running": False,
        })

        if result.deleted_count == 0:
            raise NotFoundError("Time entry not found")

        logger.info("User %s deleted time entry %s", user.id, existing["_id"])
        await self.aggregator.recompute_actual_hours(existing["task_id"])

        return {"deleted_count": result.deleted_count}

    def _build_list_query(self, user: User, filters: TimeEntryFilters) -> dict:
        # Listings only ever show closed entries
        query: dict = {"end_time": {"$ne": None}}

        if not can_view_all_entries(user):
            query["user_id"] = user.id
        elif filters.user_id:
            query["user_id"] = filters.user_id

        if filters.task_id:
            query["task_id"] = filters.task_id
        if filters.project_id:
            query["project_id"] = filters.project_id
        if filters.billable is not None:
            query["billable"] = filters.billable

        if filters.start_date or filters.end_date:
            query["start_time"] = {}
            if filters.start_date:
                query["start_time"]["$gte"] = to_storage_time(filters.start_date)
            if filters.end_date:
                query["start_time"]["$lte"] = to_storage_time(filters.end_date)

        return query

    async def list_time_entries(
        self,
        user: User,
        filters: TimeEntryFilters,
    ) -> TimeEntryPage:
        """
        List closed time entries with totals and pagination.

        Members only see their own entries; admins and managers may see any
        user's entries and narrow them with filters.user_id.
        """
        query = self._build_list_query(user, filters)
        direction = -1 if filters.sort_order == SortOrder.DESC else 1

        cursor = (
            self.time_entries.find(query)
            .sort(filters.sort_by.value, direction)
            .skip((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        entry_docs = await cursor.to_list(length=None)

        total = await self.time_entries.count_documents(query)

        totals_pipeline = [
            {"$match": query},
            {"$group": {
                "_id": None,
                "total_duration": {"$sum": "$duration"},
                "total_entries": {"$sum": 1},
                "billable_duration": {"$sum": {"$cond": ["$billable", "$duration", 0]}},
                "total_earnings": {"$sum": EARNINGS_EXPR},
            }},
        ]
        totals_docs = await self.time_entries.aggregate(totals_pipeline).to_list(length=None)
        totals = TimeEntryTotals(**totals_docs[0]) if totals_docs else TimeEntryTotals()

        return TimeEntryPage(
            entries=[self._doc_to_entry(doc) for doc in entry_docs],
            totals=totals,
            pagination=Pagination(
                page=filters.page,
                pages=math.ceil(total / filters.limit),
                total=total,
                limit=filters.limit,
            ),
        )
