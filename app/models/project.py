"""Project model definitions."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProjectBase(BaseModel):
    """Base project fields."""

    name: str
    description: str = ""
    color: str = "#3B82F6"


class ProjectCreate(ProjectBase):
    """Project creation model."""

    pass


class Project(ProjectBase):
    """Full project model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    owner_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class ProjectSummary(BaseModel):
    """Project name and color, as shown next to tracked time."""

    id: str
    name: str
    color: Optional[str] = None
