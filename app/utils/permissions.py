"""Role and relationship checks shared by the services."""
from app.models.user import User, UserRole


def is_admin(user: User) -> bool:
    """Admins may act on any task or entry."""
    return user.role == UserRole.ADMIN


def can_view_all_entries(user: User) -> bool:
    """Admins and managers may read other users' time entries and stats."""
    return user.role in (UserRole.ADMIN, UserRole.MANAGER)


def can_access_task(user: User, task: dict) -> bool:
    """
    Whether a user may track time against a task.

    Args:
        user: Acting user
        task: Task document from the database

    Returns:
        True for the task's assignee, its creator, or an admin
    """
    if is_admin(user):
        return True
    return user.id in (task.get("assigned_to"), task.get("created_by"))


def can_modify_entry(user: User, entry: dict) -> bool:
    """Owners and admins may edit or delete a time entry."""
    return is_admin(user) or entry.get("user_id") == user.id
