"""Time statistics service - reporting over closed time entries."""
from datetime import datetime
from typing import Optional

from bson import ObjectId

from app.models.project import ProjectSummary
from app.models.time_stats import (
    OverallStats,
    ProjectBreakdown,
    StatsGroupBy,
    StatsPeriod,
    TimeBucket,
    TimeStats,
    UserBreakdown,
    UserSummary,
)
from app.models.user import User
from app.services.time_entry_store import EARNINGS_EXPR
from app.utils.clock import Clock, to_storage_time, utcnow
from app.utils.durations import SECONDS_PER_HOUR
from app.utils.permissions import can_view_all_entries

DURATION_SUMS = {
    "total_duration": {"$sum": "$duration"},
    "total_entries": {"$sum": 1},
    "billable_duration": {"$sum": {"$cond": ["$billable", "$duration", 0]}},
}

GROUP_BY_FORMATS = {
    StatsGroupBy.DAY: {
        "year": {"$year": "$start_time"},
        "month": {"$month": "$start_time"},
        "day": {"$dayOfMonth": "$start_time"},
    },
    StatsGroupBy.WEEK: {
        "year": {"$year": "$start_time"},
        "week": {"$week": "$start_time"},
    },
    StatsGroupBy.MONTH: {
        "year": {"$year": "$start_time"},
        "month": {"$month": "$start_time"},
    },
}


def _object_ids(values: list) -> list[ObjectId]:
    return [ObjectId(value) for value in values if ObjectId.is_valid(value)]


class TimeStatsService:
    """Service for time tracking statistics."""

    def __init__(self, db, clock: Clock = utcnow):
        """Initialize service with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.projects = db["projects"]
        self.users = db["users"]
        self.clock = clock

    async def _aggregate(self, pipeline: list) -> list[dict]:
        return await self.time_entries.aggregate(pipeline).to_list(length=None)

    async def _overall(self, match: dict) -> OverallStats:
        result = await self._aggregate([
            {"$match": match},
            {"$group": {
                "_id": None,
                **DURATION_SUMS,
                "total_earnings": {"$sum": EARNINGS_EXPR},
                "avg_duration": {"$avg": "$duration"},
            }},
        ])
        return OverallStats(**result[0]) if result else OverallStats()

    async def _distribution(self, match: dict, group_by: StatsGroupBy) -> list[TimeBucket]:
        result = await self._aggregate([
            {"$match": match},
            {"$group": {"_id": GROUP_BY_FORMATS[group_by], **DURATION_SUMS}},
            {"$sort": {"_id.year": 1, "_id.month": 1, "_id.week": 1, "_id.day": 1}},
        ])
        return [
            TimeBucket(
                **doc["_id"],
                total_duration=doc["total_duration"],
                total_entries=doc["total_entries"],
                billable_duration=doc["billable_duration"],
            )
            for doc in result
        ]

    async def _grouped_by(self, match: dict, field: str) -> list[dict]:
        return await self._aggregate([
            {"$match": match},
            {"$group": {"_id": f"${field}", **DURATION_SUMS}},
            {"$sort": {"total_duration": -1}},
        ])

    async def _project_breakdown(self, match: dict) -> list[ProjectBreakdown]:
        groups = await self._grouped_by(match, "project_id")
        cursor = self.projects.find({"_id": {"$in": _object_ids([g["_id"] for g in groups])}})
        projects = {str(doc["_id"]): doc for doc in await cursor.to_list(length=None)}

        breakdown = []
        for group in groups:
            project = projects.get(group["_id"])
            # Time on deleted projects is left out of the breakdown
            if not project:
                continue
            breakdown.append(ProjectBreakdown(
                project=ProjectSummary(
                    id=group["_id"], name=project["name"], color=project.get("color")
                ),
                total_duration=group["total_duration"],
                total_entries=group["total_entries"],
                billable_duration=group["billable_duration"],
                total_hours=group["total_duration"] / SECONDS_PER_HOUR,
                billable_hours=group["billable_duration"] / SECONDS_PER_HOUR,
            ))
        return breakdown

    async def _user_breakdown(self, match: dict) -> list[UserBreakdown]:
        groups = await self._grouped_by(match, "user_id")
        cursor = self.users.find({"_id": {"$in": _object_ids([g["_id"] for g in groups])}})
        users = {str(doc["_id"]): doc for doc in await cursor.to_list(length=None)}

        breakdown = []
        for group in groups:
            user_doc = users.get(group["_id"])
            if not user_doc:
                continue
            breakdown.append(UserBreakdown(
                user=UserSummary(id=group["_id"], name=user_doc["name"]),
                total_duration=group["total_duration"],
                total_entries=group["total_entries"],
                billable_duration=group["billable_duration"],
                total_hours=group["total_duration"] / SECONDS_PER_HOUR,
                billable_hours=group["billable_duration"] / SECONDS_PER_HOUR,
            ))
        return breakdown

    async def get_time_stats(
        self,
        user: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
        group_by: StatsGroupBy = StatsGroupBy.DAY,
    ) -> TimeStats:
        """
        Build a time tracking report over closed entries.

        Args:
            user: Acting user
            start_date: Period start (defaults to the first of the current month)
            end_date: Period end (defaults to now)
            user_id: Narrow to one user (admins and managers only)
            project_id: Narrow to one project
            group_by: Bucket size for the time distribution

        Returns:
            Statistics report; user_breakdown is empty for members
        """
        now = self.clock()
        start = to_storage_time(start_date) if start_date else datetime(now.year, now.month, 1)
        end = to_storage_time(end_date) if end_date else now

        match: dict = {
            "start_time": {"$gte": start, "$lte": end},
            "end_time": {"$ne": None},
        }
        if not can_view_all_entries(user):
            match["user_id"] = user.id
        elif user_id:
            match["user_id"] = user_id
        if project_id:
            match["project_id"] = project_id

        user_breakdown = []
        if can_view_all_entries(user):
            user_breakdown = await self._user_breakdown(match)

        return TimeStats(
            overall=await self._overall(match),
            time_distribution=await self._distribution(match, group_by),
            project_breakdown=await self._project_breakdown(match),
            user_breakdown=user_breakdown,
            period=StatsPeriod(start_date=start, end_date=end, group_by=group_by),
        )
