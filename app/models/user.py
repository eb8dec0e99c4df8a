"""User model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """User roles."""

    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class UserBase(BaseModel):
    """Base user fields."""

    email: EmailStr
    name: str


class UserCreate(UserBase):
    """User creation model with password."""

    password: str
    hourly_rate: float = Field(default=0.0, ge=0)


class UserUpdate(BaseModel):
    """Profile update model - all fields optional."""

    name: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)


class User(UserBase):
    """User model without password (for API responses)."""

    id: str = Field(alias="_id", serialization_alias="id")
    role: UserRole = UserRole.MEMBER
    hourly_rate: float = 0.0
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
