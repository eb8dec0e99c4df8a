"""Time tracking endpoints - timers, time entries and statistics."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.config import settings
from app.database import get_database
from app.errors import ServiceError
from app.models.time_entry import (
    SortOrder,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryFilters,
    TimeEntryPage,
    TimeEntrySortField,
    TimeEntryUpdate,
    TimerStart,
)
from app.models.time_stats import StatsGroupBy, TimeStats
from app.models.user import User
from app.routers.auth import get_current_user
from app.services.time_entry_store import TimeEntryStore
from app.services.time_stats_service import TimeStatsService
from app.services.timer_service import TimerService
from app.utils.clock import Clock, get_clock


router = APIRouter(prefix="/time-tracking", tags=["time-tracking"])


def _http_error(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/start", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def start_timer(
    timer_start: TimerStart,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Start a timer on a task.

    - Caller must be the task's assignee, creator, or an admin
    - Only one timer can run at a time; a running timer yields 409 with
      the active entry in the detail
    """
    service = TimerService(db, clock=clock)
    try:
        return await service.start_timer(
            user=user,
            task_id=timer_start.task_id,
            description=timer_start.description,
            billable=timer_start.billable,
        )
    except ServiceError as e:
        raise _http_error(e)


@router.patch("/stop/{entry_id}", response_model=TimeEntry)
async def stop_timer(
    entry_id: str,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Stop a running timer.

    - Entry must be the caller's own running timer, otherwise 404
    """
    service = TimerService(db, clock=clock)
    try:
        return await service.stop_timer(user=user, entry_id=entry_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/active", response_model=Optional[TimeEntry])
async def get_active_timer(
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """Get the caller's running timer, or null."""
    service = TimerService(db)
    return await service.get_active_timer(user=user)


@router.get("/entries", response_model=TimeEntryPage)
async def list_entries(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    task_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    billable: Optional[bool] = Query(None),
    sort_by: TimeEntrySortField = Query(TimeEntrySortField.START_TIME),
    sort_order: SortOrder = Query(SortOrder.DESC),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.time_entries_max_page_size),
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """
    List completed time entries with totals.

    - Members only see their own entries
    - Admins and managers may filter by user_id
    """
    store = TimeEntryStore(db)
    filters = TimeEntryFilters(
        start_date=start_date,
        end_date=end_date,
        task_id=task_id,
        project_id=project_id,
        user_id=user_id,
        billable=billable,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return await store.list_time_entries(user, filters)


@router.post("/entries", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def create_manual_entry(
    entry_create: TimeEntryCreate,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Create a manual time entry.

    - End time must be after start time
    - Must not overlap any of the caller's entries (touching counts)
    """
    store = TimeEntryStore(db, clock=clock)
    try:
        return await store.create_manual_entry(user, entry_create)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/entries/{entry_id}", response_model=TimeEntry)
async def get_entry(
    entry_id: str,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """Get a specific time entry by ID."""
    store = TimeEntryStore(db)
    try:
        return await store.get_time_entry(user, entry_id)
    except ServiceError as e:
        raise _http_error(e)


@router.put("/entries/{entry_id}", response_model=TimeEntry)
async def update_entry(
    entry_id: str,
    entry_update: TimeEntryUpdate,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Update a time entry.

    - Owner or admin only
    - Running entries must be stopped first
    """
    store = TimeEntryStore(db, clock=clock)
    try:
        return await store.update_time_entry(user, entry_id, entry_update)
    except ServiceError as e:
        raise _http_error(e)


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Delete a time entry.

    - Owner or admin only
    - Running entries must be stopped first
    - The task's actual hours are recomputed
    """
    store = TimeEntryStore(db, clock=clock)
    try:
        return await store.delete_time_entry(user, entry_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get("/stats", response_model=TimeStats)
async def get_time_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    group_by: StatsGroupBy = Query(StatsGroupBy.DAY),
    user: User = Depends(get_current_user),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Time tracking statistics for a period.

    - Defaults to the current month
    - Per-user breakdown only for admins and managers
    """
    service = TimeStatsService(db, clock=clock)
    return await service.get_time_stats(
        user,
        start_date=start_date,
        end_date=end_date,
        user_id=user_id,
        project_id=project_id,
        group_by=group_by,
    )
