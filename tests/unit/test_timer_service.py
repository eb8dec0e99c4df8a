"""Tests for TimerService."""
import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

START = datetime(2024, 1, 1, 9, 0, 0)
STOP = datetime(2024, 1, 1, 9, 42, 30)


@pytest.mark.asyncio
class TestTimerServiceStart:
    """Tests for starting timers."""

    async def test_start_timer_success(self, mock_db, collections, make_user, task_doc):
        """Test starting a timer snapshots rate and project from the task."""
        from app.services.timer_service import TimerService

        task = task_doc(assigned_to="user123", project_id="project42")
        collections["tasks"].find_one.return_value = task
        collections["time_entries"].find_one.return_value = None
        collections["time_entries"].insert_one.return_value = MagicMock(inserted_id=ObjectId())

        service = TimerService(mock_db, clock=lambda: START)
        entry = await service.start_timer(
            user=make_user(hourly_rate=80.0),
            task_id=str(task["_id"]),
            description="Drafting intro",
            billable=False,
        )

        assert entry.is_running is True
        assert entry.start_time == START
        assert entry.end_time is None
        assert entry.duration == 0
        assert entry.project_id == "project42"
        assert entry.task_id == str(task["_id"])
        assert entry.hourly_rate == 80.0
        assert entry.billable is False
        assert entry.is_manual is False

        inserted = collections["time_entries"].insert_one.call_args[0][0]
        assert inserted["is_running"] is True
        assert inserted["user_id"] == "user123"

    async def test_start_timer_defaults_billable_and_rate(
        self, mock_db, collections, make_user, task_doc
    ):
        """Test billable defaults to true and rate to the user's (zero) rate."""
        from app.services.timer_service import TimerService

        task = task_doc()
        collections["tasks"].find_one.return_value = task
        collections["time_entries"].find_one.return_value = None
        collections["time_entries"].insert_one.return_value = MagicMock(inserted_id=ObjectId())

        service = TimerService(mock_db, clock=lambda: START)
        entry = await service.start_timer(user=make_user(), task_id=str(task["_id"]))

        assert entry.billable is True
        assert entry.hourly_rate == 0.0

    async def test_start_timer_with_running_timer(
        self, mock_db, collections, make_user, task_doc, entry_doc
    ):
        """Test starting a timer while one runs fails and returns the active entry."""
        from app.errors import ActiveTimerConflictError
        from app.services.timer_service import TimerService

        task = task_doc()
        running = entry_doc(START - timedelta(hours=1))
        collections["tasks"].find_one.return_value = task
        collections["time_entries"].find_one.return_value = running

        service = TimerService(mock_db, clock=lambda: START)

        with pytest.raises(ActiveTimerConflictError) as exc_info:
            await service.start_timer(user=make_user(), task_id=str(task["_id"]))

        assert exc_info.value.active_entry.id == str(running["_id"])
        assert exc_info.value.detail["active_timer"]["id"] == str(running["_id"])
        collections["time_entries"].insert_one.assert_not_awaited()
        collections["time_entries"].find_one_and_update.assert_not_awaited()

    async def test_start_timer_task_not_found(self, mock_db, collections, make_user):
        """Test starting a timer on a missing task fails."""
        from app.errors import NotFoundError
        from app.services.timer_service import TimerService

        collections["tasks"].find_one.return_value = None

        service = TimerService(mock_db, clock=lambda: START)

        with pytest.raises(NotFoundError, match="Task not found"):
            await service.start_timer(user=make_user(), task_id=str(ObjectId()))

    async def test_start_timer_malformed_task_id(self, mock_db, collections, make_user):
        """Test a malformed task id is reported as not found."""
        from app.errors import NotFoundError
        from app.services.timer_service import TimerService

        service = TimerService(mock_db, clock=lambda: START)

        with pytest.raises(NotFoundError):
            await service.start_timer(user=make_user(), task_id="not-an-id")

        collections["tasks"].find_one.assert_not_awaited()

    async def test_start_timer_access_denied(self, mock_db, collections, make_user, task_doc):
        """Test a member unrelated to the task cannot start a timer."""
        from app.errors import AccessDeniedError
        from app.services.timer_service import TimerService

        task = task_doc(assigned_to="someone", created_by="someone-else")
        collections["tasks"].find_one.return_value = task

        service = TimerService(mock_db, clock=lambda: START)

        with pytest.raises(AccessDeniedError):
            await service.start_timer(user=make_user(), task_id=str(task["_id"]))

        collections["time_entries"].insert_one.assert_not_awaited()

    async def test_start_timer_admin_on_any_task(self, mock_db, collections, make_user, task_doc):
        """Test admins can track time on tasks they are not part of."""
        from app.services.timer_service import TimerService

        task = task_doc(assigned_to="someone", created_by="someone-else")
        collections["tasks"].find_one.return_value = task
        collections["time_entries"].find_one.return_value = None
        collections["time_entries"].insert_one.return_value = MagicMock(inserted_id=ObjectId())

        service = TimerService(mock_db, clock=lambda: START)
        entry = await service.start_timer(
            user=make_user(user_id="admin1", role="admin"),
            task_id=str(task["_id"]),
        )

        assert entry.user_id == "admin1"

    async def test_start_timer_force_closes_stale_running_entry(
        self, mock_db, collections, make_user, task_doc, entry_doc
    ):
        """Test a running entry that slipped past the pre-check is closed at the new start."""
        from app.services.timer_service import TimerService

        task = task_doc()
        stale = entry_doc(START - timedelta(hours=1), task_id=str(ObjectId()))
        closed = dict(stale, end_time=START, is_running=False, duration=3600)

        collections["tasks"].find_one.return_value = task
        # Pre-check sees nothing (a concurrent start landed right after it)
        collections["time_entries"].find_one.return_value = None
        collections["time_entries"].find.return_value.to_list.return_value = [stale]
        collections["time_entries"].find_one_and_update.return_value = closed
        collections["time_entries"].aggregate.return_value.to_list.return_value = [
            {"_id": None, "total_duration": 3600}
        ]
        collections["time_entries"].insert_one.return_value = MagicMock(inserted_id=ObjectId())

        service = TimerService(mock_db, clock=lambda: START)
        entry = await service.start_timer(user=make_user(), task_id=str(task["_id"]))

        assert entry.is_running is True

        query, update = collections["time_entries"].find_one_and_update.call_args[0]
        assert query == {"_id": stale["_id"], "is_running": True}
        assert update["$set"]["end_time"] == START
        assert update["$set"]["is_running"] is False
        assert update["$set"]["duration"] == 3600

        # Stale entry's task gets its rollup refreshed
        task_query, task_update = collections["tasks"].update_one.call_args[0]
        assert task_query == {"_id": ObjectId(stale["task_id"])}
        assert task_update["$set"]["actual_hours"] == 1.0

    async def test_start_timer_lost_race_reports_conflict(
        self, mock_db, collections, make_user, task_doc, entry_doc
    ):
        """Test a duplicate key on insert is reported as an active timer conflict."""
        from app.errors import ActiveTimerConflictError
        from app.services.timer_service import TimerService

        task = task_doc()
        winner = entry_doc(START)
        collections["tasks"].find_one.return_value = task
        collections["time_entries"].find_one.side_effect = [None, winner]
        collections["time_entries"].insert_one.side_effect = DuplicateKeyError("duplicate key")

        service = TimerService(mock_db, clock=lambda: START)

        with pytest.raises(ActiveTimerConflictError) as exc_info:
            await service.start_timer(user=make_user(), task_id=str(task["_id"]))

        assert exc_info.value.active_entry.id == str(winner["_id"])


@pytest.mark.asyncio
class TestTimerServiceStop:
    """Tests for stopping timers."""

    async def test_stop_timer_success(self, mock_db, collections, make_user, entry_doc):
        """Test stopping computes duration and refreshes the task rollup."""
        from app.services.timer_service import TimerService

        task_id = str(ObjectId())
        running = entry_doc(START, task_id=task_id)
        stopped = dict(running, end_time=STOP, is_running=False, duration=2550)

        collections["time_entries"].find_one.return_value = running
        collections["time_entries"].find_one_and_update.return_value = stopped
        collections["time_entries"].aggregate.return_value.to_list.return_value = [
            {"_id": None, "total_duration": 2550}
        ]

        service = TimerService(mock_db, clock=lambda: STOP)
        entry = await service.stop_timer(user=make_user(), entry_id=str(running["_id"]))

        assert entry.is_running is False
        assert entry.end_time == STOP
        assert entry.duration == 2550

        update = collections["time_entries"].find_one_and_update.call_args[0][1]
        assert update["$set"]["duration"] == 2550
        assert update["$set"]["end_time"] == STOP
        assert update["$set"]["is_running"] is False

        task_update = collections["tasks"].update_one.call_args[0][1]
        assert task_update["$set"]["actual_hours"] == 0.71

    async def test_stop_timer_truncates_fractional_seconds(
        self, mock_db, collections, make_user, entry_doc
    ):
        """Test a 90.7 second timer records 90 seconds."""
        from app.services.timer_service import TimerService

        running = entry_doc(START, task_id=str(ObjectId()))
        end = START + timedelta(seconds=90, milliseconds=700)
        collections["time_entries"].find_one.return_value = running
        collections["time_entries"].find_one_and_update.return_value = dict(
            running, end_time=end, is_running=False, duration=90
        )

        service = TimerService(mock_db, clock=lambda: end)
        await service.stop_timer(user=make_user(), entry_id=str(running["_id"]))

        update = collections["time_entries"].find_one_and_update.call_args[0][1]
        assert update["$set"]["duration"] == 90

    async def test_stop_timer_in_start_millisecond(
        self, mock_db, collections, make_user, entry_doc
    ):
        """Test a timer stopped in the millisecond it started still ends after its start."""
        from app.services.timer_service import TimerService

        running = entry_doc(START, task_id=str(ObjectId()))
        end = START + timedelta(milliseconds=1)
        collections["time_entries"].find_one.return_value = running
        collections["time_entries"].find_one_and_update.return_value = dict(
            running, end_time=end, is_running=False, duration=0
        )

        service = TimerService(mock_db, clock=lambda: START)
        await service.stop_timer(user=make_user(), entry_id=str(running["_id"]))

        update = collections["time_entries"].find_one_and_update.call_args[0][1]
        assert update["$set"]["end_time"] == end
        assert update["$set"]["end_time"] > running["start_time"]
        assert update["$set"]["duration"] == 0

    async def test_stop_timer_only_matches_own_running_entry(
        self, mock_db, collections, make_user
    ):
        """Test stop looks up the entry scoped to the caller and running state."""
        from app.errors import NotFoundError
        from app.services.timer_service import TimerService

        entry_id = ObjectId()
        collections["time_entries"].find_one.return_value = None

        service = TimerService(mock_db, clock=lambda: STOP)

        with pytest.raises(NotFoundError, match="Active timer not found"):
            await service.stop_timer(user=make_user(), entry_id=str(entry_id))

        query = collections["time_entries"].find_one.call_args[0][0]
        assert query == {"_id": entry_id, "user_id": "user123", "is_running": True}
        collections["tasks"].update_one.assert_not_awaited()

    async def test_stop_timer_malformed_id(self, mock_db, collections, make_user):
        """Test a malformed entry id is reported as not found."""
        from app.errors import NotFoundError
        from app.services.timer_service import TimerService

        service = TimerService(mock_db, clock=lambda: STOP)

        with pytest.raises(NotFoundError):
            await service.stop_timer(user=make_user(), entry_id="bogus")

    async def test_stop_timer_already_stopped_concurrently(
        self, mock_db, collections, make_user, entry_doc
    ):
        """Test a timer stopped by a concurrent request is reported as not found."""
        from app.errors import NotFoundError
        from app.services.timer_service import TimerService

        running = entry_doc(START)
        collections["time_entries"].find_one.return_value = running
        collections["time_entries"].find_one_and_update.return_value = None

        service = TimerService(mock_db, clock=lambda: STOP)

        with pytest.raises(NotFoundError):
            await service.stop_timer(user=make_user(), entry_id=str(running["_id"]))


@pytest.mark.asyncio
class TestTimerServiceGetActive:
    """Tests for getting the active timer."""

    async def test_get_active_timer_found(self, mock_db, collections, make_user, entry_doc):
        """Test getting the running timer."""
        from app.services.timer_service import TimerService

        running = entry_doc(START)
        collections["time_entries"].find_one.return_value = running

        service = TimerService(mock_db)
        entry = await service.get_active_timer(user=make_user())

        assert entry is not None
        assert entry.id == str(running["_id"])
        assert entry.is_running is True
        query = collections["time_entries"].find_one.call_args[0][0]
        assert query == {"user_id": "user123", "is_running": True}

    async def test_get_active_timer_none(self, mock_db, collections, make_user):
        """Test getting the active timer when none is running."""
        from app.services.timer_service import TimerService

        collections["time_entries"].find_one.return_value = None

        service = TimerService(mock_db)
        entry = await service.get_active_timer(user=make_user())

        assert entry is None
