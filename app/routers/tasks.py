"""Tasks router - API endpoints for tasks."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.database import get_database
from app.errors import ServiceError
from app.models.task import Task, TaskCreate
from app.models.user import User
from app.routers.auth import get_current_user
from app.services.task_service import TaskService


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    task: TaskCreate,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """
    Create a task.

    - Requires authentication
    - Project must exist
    """
    service = TaskService(db)
    try:
        return await service.create_task(user, task)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("", response_model=list[Task])
async def list_tasks(
    project_id: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """List tasks the authenticated user created or is assigned to."""
    service = TaskService(db)
    return await service.list_tasks(user, project_id=project_id)


@router.get("/{task_id}", response_model=Task)
async def get_task(
    task_id: str,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """
    Get a task, including its tracked actual hours.

    - Caller must be assignee, creator or admin
    """
    service = TaskService(db)
    try:
        return await service.get_task(user, task_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
