"""Pytest configuration and fixtures."""
import os
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import AsyncClient, ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from app.main import app
from app.config import settings
from app.database import ensure_indexes
from app.utils.clock import get_clock


def make_collection():
    """A Motor collection double: async CRUD methods plus chainable cursors."""
    collection = MagicMock()
    for name in (
        "find_one",
        "insert_one",
        "find_one_and_update",
        "update_one",
        "delete_one",
        "count_documents",
    ):
        setattr(collection, name, AsyncMock())
    collection.count_documents.return_value = 0

    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor

    aggregate_cursor = MagicMock()
    aggregate_cursor.to_list = AsyncMock(return_value=[])
    collection.aggregate.return_value = aggregate_cursor

    return collection


@pytest.fixture
def collections():
    """Mock collections keyed by name."""
    return {
        name: make_collection()
        for name in ("time_entries", "tasks", "projects", "users")
    }


@pytest.fixture
def mock_db(collections):
    """Mock database handing out the mock collections."""
    db = MagicMock()
    db.__getitem__.side_effect = lambda key: collections[key]
    return db


@pytest.fixture
def make_user():
    """Factory for authenticated users."""
    from app.models.user import User

    def _make_user(user_id="user123", role="member", hourly_rate=0.0):
        now = datetime(2024, 1, 1)
        return User(
            _id=user_id,
            email=f"{user_id}@example.com",
            name=user_id,
            role=role,
            hourly_rate=hourly_rate,
            created_at=now,
            updated_at=now,
        )

    return _make_user


@pytest.fixture
def task_doc():
    """Factory for task documents."""

    def _task_doc(task_id=None, assigned_to="user123", created_by="creator1", project_id="project1"):
        return {
            "_id": ObjectId(task_id) if task_id else ObjectId(),
            "title": "Write report",
            "project_id": project_id,
            "assigned_to": assigned_to,
            "created_by": created_by,
            "actual_hours": 0.0,
            "created_at": datetime(2024, 1, 1),
            "updated_at": datetime(2024, 1, 1),
        }

    return _task_doc


@pytest.fixture
def entry_doc():
    """Factory for time entry documents."""

    def _entry_doc(
        start_time,
        end_time=None,
        user_id="user123",
        task_id="task1",
        is_running=None,
        is_manual=False,
        billable=True,
        hourly_rate=0.0,
    ):
        if is_running is None:
            is_running = end_time is None
        duration = int((end_time - start_time).total_seconds()) if end_time else 0
        return {
            "_id": ObjectId(),
            "user_id": user_id,
            "task_id": task_id,
            "project_id": "project1",
            "description": "",
            "start_time": start_time,
            "end_time": end_time,
            "duration": duration,
            "is_manual": is_manual,
            "is_running": is_running,
            "billable": billable,
            "hourly_rate": hourly_rate,
            "tags": [],
            "created_at": start_time,
            "updated_at": start_time,
        }

    return _entry_doc


class FrozenClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest_asyncio.fixture
async def app_client():
    """
    Create a test client with a clean test database.

    This fixture:
    - Creates a test database connection (skips if MongoDB is unreachable)
    - Yields an async HTTP client for testing
    - Cleans up the test database after each test
    """
    test_client = AsyncIOMotorClient(settings.mongodb_url, serverSelectionTimeoutMS=2000)
    try:
        await test_client.admin.command("ping")
    except PyMongoError:
        test_client.close()
        pytest.skip("MongoDB is not reachable")

    test_db_name = f"{settings.mongodb_db_name}_test"
    test_db = test_client[test_db_name]
    await ensure_indexes(test_db)

    # Override the database dependency
    from app.database import database
    original_db = database.db
    database.db = test_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    # Cleanup: drop test database
    await test_client.drop_database(test_db_name)

    database.db = original_db
    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def frozen_clock(app_client):
    """Pin the clock used by the time tracking endpoints."""
    clock = FrozenClock(datetime(2024, 1, 1, 9, 0, 0))
    app.dependency_overrides[get_clock] = lambda: clock
    yield clock
    app.dependency_overrides.pop(get_clock, None)


@pytest_asyncio.fixture
async def register_user(app_client):
    """Factory that registers and logs in a user, returning id and headers."""
    from app.database import database

    async def _register(email, name="Test User", hourly_rate=0.0, role=None):
        await app_client.post(
            "/auth/register",
            json={
                "email": email,
                "password": "password123",
                "name": name,
                "hourly_rate": hourly_rate,
            },
        )
        if role:
            await database.db["users"].update_one({"email": email}, {"$set": {"role": role}})

        login_response = await app_client.post(
            "/auth/login", json={"email": email, "password": "password123"}
        )
        headers = {"Authorization": f"Bearer {login_response.json()['access_token']}"}
        me = await app_client.get("/auth/me", headers=headers)
        return {"id": me.json()["id"], "headers": headers}

    return _register
