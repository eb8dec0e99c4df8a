"""Task model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task workflow states."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    """Task priorities."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskBase(BaseModel):
    """Base task fields."""

    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    project_id: str
    assigned_to: Optional[str] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)


class TaskCreate(TaskBase):
    """Task creation model."""

    pass


class Task(TaskBase):
    """Full task model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    created_by: str
    # Written only by the task hours aggregator
    actual_hours: float = 0.0
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
