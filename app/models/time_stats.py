"""Time statistics model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from app.models.project import ProjectSummary


class StatsGroupBy(str, Enum):
    """Bucket size for the time distribution."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class OverallStats(BaseModel):
    """Totals across the whole period."""

    total_duration: int = 0
    total_entries: int = 0
    billable_duration: int = 0
    total_earnings: float = 0.0
    avg_duration: float = 0.0


class TimeBucket(BaseModel):
    """Tracked time within one day, week or month."""

    year: int
    month: Optional[int] = None
    week: Optional[int] = None
    day: Optional[int] = None
    total_duration: int
    total_entries: int
    billable_duration: int


class UserSummary(BaseModel):
    """User name, as shown next to tracked time."""

    id: str
    name: str


class ProjectBreakdown(BaseModel):
    """Tracked time for one project."""

    project: ProjectSummary
    total_duration: int
    total_entries: int
    billable_duration: int
    total_hours: float
    billable_hours: float


class UserBreakdown(BaseModel):
    """Tracked time for one user."""

    user: UserSummary
    total_duration: int
    total_entries: int
    billable_duration: int
    total_hours: float
    billable_hours: float


class StatsPeriod(BaseModel):
    """The period a stats report covers."""

    start_date: datetime
    end_date: datetime
    group_by: StatsGroupBy


class TimeStats(BaseModel):
    """Time tracking statistics report."""

    overall: OverallStats
    time_distribution: list[TimeBucket]
    project_breakdown: list[ProjectBreakdown]
    user_breakdown: list[UserBreakdown]
    period: StatsPeriod
