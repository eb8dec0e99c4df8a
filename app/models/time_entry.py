"""Time entry model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from app.utils.durations import compute_earnings, format_duration


class TimeEntryBase(BaseModel):
    """Base time entry fields."""

    task_id: str
    description: str = ""
    billable: bool = True
    tags: list[str] = Field(default_factory=list)


class TimerStart(BaseModel):
    """Request model for starting a timer."""

    task_id: str
    description: str = Field(default="", max_length=500)
    billable: bool = True


class TimeEntryCreate(BaseModel):
    """Manual (backfilled) time entry creation model."""

    task_id: str
    start_time: datetime
    end_time: datetime
    description: str = Field(default="", max_length=500)
    billable: bool = True
    tags: list[str] = Field(default_factory=list)


class TimeEntryUpdate(BaseModel):
    """Time entry update model - all fields optional."""

    description: Optional[str] = Field(default=None, max_length=500)
    tags: Optional[list[str]] = None
    billable: Optional[bool] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class TimeEntry(TimeEntryBase):
    """Full time entry model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    project_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: int = 0  # seconds, 0 while running
    is_manual: bool = False
    is_running: bool = False
    hourly_rate: float = 0.0
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}

    @computed_field
    @property
    def earnings(self) -> float:
        return compute_earnings(self.duration, self.billable, self.hourly_rate)

    @computed_field
    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)


class SortOrder(str, Enum):
    """Sort direction for listings."""

    ASC = "asc"
    DESC = "desc"


class TimeEntrySortField(str, Enum):
    """Fields time entry listings can be sorted by."""

    START_TIME = "start_time"
    END_TIME = "end_time"
    DURATION = "duration"
    CREATED_AT = "created_at"


class TimeEntryFilters(BaseModel):
    """Filters, sorting and paging for time entry listings."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    task_id: Optional[str] = None
    project_id: Optional[str] = None
    user_id: Optional[str] = None
    billable: Optional[bool] = None
    sort_by: TimeEntrySortField = TimeEntrySortField.START_TIME
    sort_order: SortOrder = SortOrder.DESC
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)


class TimeEntryTotals(BaseModel):
    """Totals over a filtered set of time entries."""

    total_duration: int = 0
    total_entries: int = 0
    billable_duration: int = 0
    total_earnings: float = 0.0


class Pagination(BaseModel):
    """Paging information for a listing."""

    page: int
    pages: int
    total: int
    limit: int


class TimeEntryPage(BaseModel):
    """A page of time entries with totals."""

    entries: list[TimeEntry]
    totals: TimeEntryTotals
    pagination: Pagination
