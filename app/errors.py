"""Service-level errors for the time tracking engine.

Every error here is caller-correctable. Routers translate them into HTTP
responses using ``status_code`` and ``detail``.
"""
from typing import Any, Optional


class ServiceError(ValueError):
    """Base class for errors raised by services."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def detail(self) -> Any:
        return self.message


class NotFoundError(ServiceError):
    """Referenced task or time entry does not exist (or is not visible)."""

    status_code = 404


class AccessDeniedError(ServiceError):
    """Caller lacks the relationship required for the operation."""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class ActiveTimerConflictError(ServiceError):
    """Caller already has a running timer."""

    status_code = 409

    def __init__(self, active_entry: Optional[Any] = None):
        super().__init__("You already have an active timer. Please stop it first.")
        self.active_entry = active_entry

    @property
    def detail(self) -> Any:
        active = None
        if self.active_entry is not None:
            active = self.active_entry.model_dump(mode="json", by_alias=True)
        return {"message": self.message, "active_timer": active}


class InvalidRangeError(ServiceError):
    """End time is not strictly after start time."""

    def __init__(self, message: str = "End time must be after start time"):
        super().__init__(message)


class OverlappingEntryError(ServiceError):
    """A manual entry intersects an existing entry of the same user."""

    status_code = 409

    def __init__(self, message: str = "Time entry overlaps with existing entry"):
        super().__init__(message)


class CannotEditRunningError(ServiceError):
    """Running entries must be stopped before they are edited."""

    def __init__(self, message: str = "Cannot update running timer. Stop it first."):
        super().__init__(message)


class CannotDeleteRunningError(ServiceError):
    """Running entries must be stopped before they are deleted."""

    def __init__(self, message: str = "Cannot delete running timer. Stop it first."):
        super().__init__(message)
